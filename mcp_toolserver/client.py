"""MCP client speaking JSON-RPC 2.0 over a byte stream."""
import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import DEFAULT_PROTOCOL_VERSION
from .jsonrpc.handler import extract_id
from .jsonrpc.models import JSONRPCRequest
from .mcp_transport import PendingRequests, StreamTransport
from .utils.errors import JSONRPCErrorResponse, TransportClosedError

logger = logging.getLogger(__name__)


@dataclass
class MCPTool:
    """Represents an MCP tool."""
    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)


class MCPStreamClient:
    """Client for interacting with an MCP server over a duplex stream.

    Requests may be issued concurrently; each reply is matched to its request
    by id, whatever order the server answers in.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        request_timeout: Optional[float] = 30.0,
        read_chunk_size: int = 64 * 1024,
    ):
        """Initialize MCP client.

        Args:
            reader: Stream carrying server responses
            writer: Stream carrying client requests
            request_timeout: Default seconds to wait for each response (None waits forever)
            read_chunk_size: Bytes requested per read from the stream
        """
        self.request_timeout = request_timeout
        self.pending = PendingRequests()
        self.tools: Dict[str, MCPTool] = {}
        self._ids = itertools.count(1)
        self.transport = StreamTransport(
            reader,
            writer,
            self._on_message,
            read_chunk_size=read_chunk_size,
            max_frame_bytes=None,
            name="mcp-stream-client",
        )
        self.transport.on_close(self._fail_pending)

    async def __aenter__(self) -> "MCPStreamClient":
        """Context manager entry."""
        self.transport.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.close()

    async def close(self):
        """Close the stream; pending requests fail with TransportClosedError."""
        await self.transport.close()

    def _get_next_id(self) -> int:
        """Get next request ID for JSON-RPC, skipping ids still in flight."""
        request_id = next(self._ids)
        while request_id in self.pending:
            request_id = next(self._ids)
        return request_id

    def _fail_pending(self):
        if len(self.pending):
            logger.warning(f"Transport closed with {len(self.pending)} pending requests")
        self.pending.fail_all(TransportClosedError("Transport closed before response arrived"))

    async def _on_message(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object message: {message!r}")
            return None
        request_id = extract_id(message)
        if request_id is None or not self.pending.resolve(request_id, message):
            logger.debug(f"Ignoring uncorrelated message with id {message.get('id')!r}")
        return None

    async def request(
        self,
        method: str,
        params: Optional[Any] = None,
        id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Make a JSON-RPC 2.0 request and wait for its response.

        Args:
            method: JSON-RPC method name (e.g., "tools/list")
            params: Method parameters
            id: Request id; generated when omitted
            timeout: Seconds to wait; defaults to ``request_timeout``

        Returns:
            The ``result`` member of the response

        Raises:
            JSONRPCErrorResponse: If the server answers with an error object
            TransportClosedError: If the stream closes first
            asyncio.TimeoutError: If no response arrives in time
        """
        request_id = self._get_next_id() if id is None else id
        payload = JSONRPCRequest(method=method, params=params, id=request_id)
        future = self.pending.register(request_id)
        try:
            await self.transport.send(payload.model_dump(exclude_none=True))
            response = await asyncio.wait_for(
                future, timeout if timeout is not None else self.request_timeout
            )
        finally:
            self.pending.discard(request_id)

        if "error" in response:
            error = response["error"] or {}
            raise JSONRPCErrorResponse(
                code=error.get("code", 0),
                message=error.get("message", ""),
                data=error.get("data"),
            )
        return response.get("result", {})

    async def notify(self, method: str, params: Optional[Any] = None):
        """Send a notification (no id, no response)."""
        payload = JSONRPCRequest(method=method, params=params)
        await self.transport.send(payload.model_dump(exclude_none=True))

    async def initialize(self, protocol_version: str = DEFAULT_PROTOCOL_VERSION) -> Dict[str, Any]:
        """Initialize MCP session with the server.

        Returns:
            Server capabilities and info
        """
        result = await self.request(
            "initialize",
            {
                "protocolVersion": protocol_version,
                "capabilities": {},
                "clientInfo": {"name": "mcp-stream-client", "version": "1.0.0"},
            },
        )
        await self.notify("notifications/initialized")
        return result

    async def ping(self) -> Dict[str, Any]:
        return await self.request("ping", {})

    async def list_tools(self) -> List[MCPTool]:
        """List available tools from the server."""
        result = await self.request("tools/list", {})
        tools = []
        for tool_data in result.get("tools", []):
            tool = MCPTool(
                name=tool_data["name"],
                description=tool_data.get("description", ""),
                input_schema=tool_data.get("inputSchema", {}),
            )
            tools.append(tool)
            self.tools[tool.name] = tool
        logger.info(f"Discovered {len(tools)} tools")
        return tools

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Call a tool and return the raw result (``content``, ``isError``)."""
        params: Dict[str, Any] = {"name": name}
        if arguments is not None:
            params["arguments"] = arguments
        return await self.request("tools/call", params, timeout=timeout)

    @staticmethod
    def result_text(result: Dict[str, Any]) -> str:
        """Concatenated text items of a ``tools/call`` result."""
        return "".join(
            item.get("text", "")
            for item in result.get("content", [])
            if item.get("type") == "text"
        )
