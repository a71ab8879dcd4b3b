"""Custom exception classes for the MCP server."""
from typing import Any, Optional


class MCPError(Exception):
    """Base exception for MCP-related errors."""

    pass


class DuplicateToolNameError(MCPError, ValueError):
    """Two tool descriptors share the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool names must be unique, duplicated tool name: {name}")


class ToolArgumentError(MCPError, ValueError):
    """Tool arguments could not be bound to the tool's parameters."""

    pass


class InvalidParamsError(MCPError, ValueError):
    """JSON-RPC method params are missing or malformed."""

    pass


class FrameDecodeError(MCPError, ValueError):
    """A received frame is not valid JSON text."""

    pass


class TransportClosedError(MCPError, ConnectionError):
    """The stream transport is closed; no further frames can be exchanged."""

    pass


class JSONRPCErrorResponse(MCPError):
    """The remote peer answered a request with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"JSON-RPC Error {code}: {message}")
