"""FastAPI app exposing the MCP server over HTTP POST."""
import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .jsonrpc.models import ErrorCode, JSONRPCError, JSONRPCResponse
from .server import McpServer

logger = logging.getLogger(__name__)


def create_app(server: McpServer) -> FastAPI:
    """Build a FastAPI app that dispatches JSON-RPC bodies to ``server``.

    Every JSON-RPC message is a new HTTP POST. Messages that get no reply
    (notifications, non-numeric ids) are acknowledged with 202 Accepted.
    """
    settings = server.settings
    app = FastAPI(
        title=settings.server_name,
        description="MCP server exposing tools over JSON-RPC 2.0",
        version=settings.server_version,
    )

    async def handle_jsonrpc(request: Request) -> Response:
        body = await request.body()
        try:
            message = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Rejecting unparseable request body: {e}")
            error = JSONRPCResponse(
                id=None,
                error=JSONRPCError(code=ErrorCode.PARSE_ERROR, message="Parse error"),
            )
            return JSONResponse(status_code=400, content=error.to_message())

        response = await server.handle(message)
        if response is None:
            return Response(status_code=202)
        return JSONResponse(content=response)

    # MCP endpoint plus legacy JSON-RPC paths
    for path in ("/mcp", "/", "/rpc"):
        app.add_api_route(path, handle_jsonrpc, methods=["POST"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.server_name,
            "version": settings.server_version,
            "transports": ["stdio", "http"],
            "protocol_version": settings.protocol_version,
            "tools": len(server.registry),
        }

    return app
