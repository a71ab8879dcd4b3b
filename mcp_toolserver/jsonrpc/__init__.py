"""JSON-RPC 2.0 implementation for MCP protocol."""
from .models import JSONRPCRequest, JSONRPCResponse, JSONRPCError, ErrorCode
from .handler import JSONRPCHandler, extract_id

__all__ = [
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCError",
    "ErrorCode",
    "JSONRPCHandler",
    "extract_id",
]
