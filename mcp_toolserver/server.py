"""MCP server: capability negotiation, tool listing and tool execution."""
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from .config import ServerSettings
from .invoker import ToolInvoker
from .jsonrpc.handler import JSONRPCHandler
from .registry import ToolDescriptor, ToolRegistry
from .utils.errors import InvalidParamsError

logger = logging.getLogger(__name__)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class CallToolResult(BaseModel):
    """Result of ``tools/call``; tool failures set ``isError``."""

    content: List[TextContent]
    isError: Optional[bool] = None

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "CallToolResult":
        return cls(content=[TextContent(text=text)], isError=True if is_error else None)


class McpServer:
    """Routes MCP JSON-RPC requests to a fixed set of tools.

    Supported methods: ``initialize``, ``ping``, ``tools/list`` and
    ``tools/call``. The server is transport-agnostic; ``StreamTransport`` and
    the FastAPI app in ``http_transport`` both feed decoded messages to
    ``handle``.
    """

    def __init__(
        self,
        tools: List[ToolDescriptor],
        settings: Optional[ServerSettings] = None,
        invoker: Optional[ToolInvoker] = None,
    ):
        self.settings = settings or ServerSettings()
        self.registry = ToolRegistry(tools)
        self.invoker = invoker or ToolInvoker()
        self.jsonrpc_handler = JSONRPCHandler()
        self._register_methods()

    @property
    def server_info(self) -> Dict[str, str]:
        return {
            "name": self.settings.server_name,
            "version": self.settings.server_version,
        }

    def _register_methods(self):
        """Register all JSON-RPC methods."""
        self.jsonrpc_handler.register_method("initialize", self.initialize)
        self.jsonrpc_handler.register_method("ping", self.ping)
        self.jsonrpc_handler.register_method("tools/list", self.tools_list)
        self.jsonrpc_handler.register_method("tools/call", self.tools_call)

    async def handle(self, message: Any) -> Optional[Dict[str, Any]]:
        """Handle one decoded message and return the response to send, if any."""
        response = await self.jsonrpc_handler.handle_message(message)
        if response is None:
            return None
        return response.to_message()

    async def initialize(self, params: Any) -> Dict[str, Any]:
        protocol_version = self.settings.protocol_version
        if isinstance(params, dict) and isinstance(params.get("protocolVersion"), str):
            protocol_version = params["protocolVersion"]
        logger.info(f"Initialize with protocol version {protocol_version}")
        return {
            "protocolVersion": protocol_version,
            "capabilities": {
                "tools": {"listChanged": False}
            },
            "serverInfo": self.server_info,
        }

    async def ping(self, params: Any) -> Dict[str, Any]:
        return {}

    async def tools_list(self, params: Any) -> Dict[str, Any]:
        # Cursor params are accepted in any shape; the full list fits in one page.
        return {"tools": self.registry.list_tools()}

    async def tools_call(self, params: Any) -> Dict[str, Any]:
        if not isinstance(params, dict):
            raise InvalidParamsError("Invalid params")

        name = params.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidParamsError("Missing tool name")

        tool = self.registry.find(name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {name}")
            result = CallToolResult.text(f"Unknown tool: {name}", is_error=True)
        else:
            outcome = await self.invoker.invoke(tool, params.get("arguments"))
            result = CallToolResult.text(outcome.text, is_error=outcome.is_error)

        return result.model_dump(exclude_none=True)
