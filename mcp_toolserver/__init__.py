"""MCP tool server: JSON-RPC 2.0 dispatch over stream and HTTP transports."""
from .config import ServerSettings
from .registry import ToolDescriptor, ToolRegistry
from .invoker import ToolInvoker, ToolOutcome
from .server import McpServer
from .mcp_transport import StreamTransport, JsonCodec, FrameDecoder, PendingRequests, run_stdio
from .client import MCPStreamClient

__version__ = "1.0.0"

__all__ = [
    "ServerSettings",
    "ToolDescriptor",
    "ToolRegistry",
    "ToolInvoker",
    "ToolOutcome",
    "McpServer",
    "StreamTransport",
    "JsonCodec",
    "FrameDecoder",
    "PendingRequests",
    "run_stdio",
    "MCPStreamClient",
]
