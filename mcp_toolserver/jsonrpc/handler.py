"""JSON-RPC 2.0 request handler."""
from typing import Any, Awaitable, Callable, Dict, Optional, Union
import logging
import math
from .models import (
    JSONRPCResponse,
    JSONRPCError,
    ErrorCode
)

logger = logging.getLogger(__name__)

MethodHandler = Callable[[Any], Awaitable[Any]]


def extract_id(message: Dict[str, Any]) -> Optional[Union[int, float]]:
    """Return the request id if it is a finite JSON number, otherwise None.

    ``bool`` is a subclass of ``int`` in Python but ``true``/``false`` are not
    numbers on the wire, so they are rejected too. ``json.loads`` accepts
    ``NaN`` and ``Infinity``, which cannot be written back as valid JSON.
    """
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (int, float)):
        return None
    if isinstance(request_id, float) and not math.isfinite(request_id):
        return None
    return request_id


class JSONRPCHandler:
    """Handles JSON-RPC 2.0 requests and routes to registered methods.

    The handler keeps no per-request state; the method table is filled once
    at startup and only read afterwards.
    """

    def __init__(self):
        self.methods: Dict[str, MethodHandler] = {}

    def register_method(self, method_name: str, handler: MethodHandler):
        """Register a JSON-RPC method handler.

        Args:
            method_name: Name of the JSON-RPC method (e.g., "tools/list")
            handler: Async callable receiving the raw ``params`` value
        """
        self.methods[method_name] = handler
        logger.info(f"Registered JSON-RPC method: {method_name}")

    async def handle_message(self, message: Any) -> Optional[JSONRPCResponse]:
        """Handle one decoded JSON-RPC message.

        Args:
            message: Decoded JSON document, of any shape

        Returns:
            JSONRPCResponse with result or error, or None when the message
            cannot be addressed (not an object, missing or non-numeric id)
        """
        if not isinstance(message, dict):
            logger.debug(f"Dropping non-object message: {type(message).__name__}")
            return None

        request_id = extract_id(message)
        if request_id is None:
            logger.debug("Dropping message without a numeric id")
            return None

        method = message.get("method")
        if not isinstance(method, str) or not method.strip():
            return self.error_response(
                request_id, ErrorCode.INVALID_REQUEST, "Invalid Request: Missing method"
            )

        if method not in self.methods:
            return self.error_response(
                request_id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}"
            )

        handler = self.methods[method]
        try:
            result = await handler(message.get("params"))
        except ValueError as e:
            message_text = str(e).strip() or "Invalid params"
            return self.error_response(request_id, ErrorCode.INVALID_PARAMS, message_text)
        except Exception as e:
            logger.error(f"Internal error handling {method}: {e}", exc_info=True)
            return self.error_response(
                request_id,
                ErrorCode.INTERNAL_ERROR,
                "Internal error",
                data={"details": str(e) or type(e).__name__},
            )

        return JSONRPCResponse(id=request_id, result=result)

    @staticmethod
    def error_response(
        request_id: Any, code: int, message: str, data: Optional[Any] = None
    ) -> JSONRPCResponse:
        """Build an error response for the given request id."""
        return JSONRPCResponse(
            id=request_id,
            error=JSONRPCError(code=code, message=message, data=data)
        )
