"""Shared utilities."""
from .errors import (
    MCPError,
    DuplicateToolNameError,
    ToolArgumentError,
    InvalidParamsError,
    FrameDecodeError,
    TransportClosedError,
    JSONRPCErrorResponse,
)

__all__ = [
    "MCPError",
    "DuplicateToolNameError",
    "ToolArgumentError",
    "InvalidParamsError",
    "FrameDecodeError",
    "TransportClosedError",
    "JSONRPCErrorResponse",
]
