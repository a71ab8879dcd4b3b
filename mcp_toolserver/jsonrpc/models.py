"""JSON-RPC 2.0 request/response models."""
from pydantic import BaseModel
from typing import Any, Optional, Union, Literal

RequestId = Union[int, float, str]


class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request model.

    Used for outgoing messages. Incoming messages are validated field by
    field in ``JSONRPCHandler`` so that malformed envelopes can be dropped or
    answered instead of failing model validation as a whole.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Any] = None
    id: Optional[RequestId] = None


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error model."""

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response model."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[RequestId]
    result: Optional[Any] = None
    error: Optional[JSONRPCError] = None

    def to_message(self) -> dict:
        """Wire form of the response: ``id`` is always present, unset members are not."""
        message = self.model_dump(exclude_none=True)
        message["id"] = self.id
        return message


class ErrorCode:
    """JSON-RPC 2.0 standard error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
