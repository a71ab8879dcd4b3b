"""Shared fixtures for MCP server tests."""
import asyncio
import random
import socket
import threading
import time
from typing import List, Optional

import pytest
import pytest_asyncio
from pydantic import BaseModel

from mcp_toolserver.client import MCPStreamClient
from mcp_toolserver.mcp_transport import StreamTransport
from mcp_toolserver.registry import ToolDescriptor
from mcp_toolserver.server import McpServer

# Small socket buffers and read chunks so multi-megabyte frames cross the
# stream in many partial reads while the peer is still writing.
SOCKET_BUFFER_SIZE = 4096
READ_CHUNK_SIZE = 1024


def add(a: int, b: int) -> int:
    """Add two integers."""
    return a + b


def echo(input: str) -> str:
    """Return the input unchanged."""
    return input


def fail(input: str) -> str:
    raise ValueError("Invalid input")


def blank_message() -> str:
    raise RuntimeError("")


def complex_result() -> dict:
    return {"key": "value", "items": [1, 2, 3]}


def noop() -> None:
    pass


def greet(name: str, greeting: Optional[str] = "Hello") -> str:
    return f"{greeting}, {name}!"


class Customer(BaseModel):
    name: str
    email: str


def process_order(order_id: str, items: List[str], customer: Customer) -> str:
    """Process an order for a customer."""
    return f"Processed {order_id} for {customer.name} with {len(items)} items"


def double(n: int) -> int:
    return n * 2


def slow_echo(value: str) -> str:
    time.sleep(random.uniform(0.01, 0.05))
    return value


def thread_name(value: str) -> str:
    return threading.current_thread().name


async def async_echo(value: str) -> str:
    await asyncio.sleep(0)
    return value


def tool(func, **kwargs) -> ToolDescriptor:
    return ToolDescriptor.from_function(func, **kwargs)


@pytest.fixture
def calculator_tools():
    return [tool(add), tool(echo), tool(fail), tool(noop)]


@pytest.fixture
def server(calculator_tools):
    """Create McpServer instance for testing."""
    return McpServer(calculator_tools)


def request(method, params=None, id=1):
    """Build a JSON-RPC request message."""
    message = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        message["params"] = params
    return message


@pytest_asyncio.fixture
async def stream_pair():
    """Two connected asyncio stream endpoints with small socket buffers."""
    server_sock, client_sock = socket.socketpair()
    for sock in (server_sock, client_sock):
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, SOCKET_BUFFER_SIZE)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, SOCKET_BUFFER_SIZE)

    server_streams = await asyncio.open_connection(sock=server_sock)
    client_streams = await asyncio.open_connection(sock=client_sock)
    yield server_streams, client_streams

    for _, writer in (server_streams, client_streams):
        writer.close()


@pytest_asyncio.fixture
async def serve(stream_pair):
    """Start a server transport on one end of the stream pair.

    Returns the McpServer, its StreamTransport and the raw client streams.
    """
    (server_reader, server_writer), client_streams = stream_pair
    started = []

    def _serve(tools, **transport_options):
        mcp_server = McpServer(tools)
        transport_options.setdefault("read_chunk_size", READ_CHUNK_SIZE)
        transport = StreamTransport(
            server_reader, server_writer, mcp_server.handle, **transport_options
        )
        transport.start()
        started.append(transport)
        return mcp_server, transport, client_streams

    yield _serve

    for transport in started:
        await transport.close()


@pytest_asyncio.fixture
async def connect(serve):
    """Start a server transport and an MCPStreamClient connected to it."""
    clients = []

    def _connect(tools, request_timeout=10.0):
        mcp_server, transport, (client_reader, client_writer) = serve(tools)
        client = MCPStreamClient(
            client_reader,
            client_writer,
            request_timeout=request_timeout,
            read_chunk_size=READ_CHUNK_SIZE,
        )
        client.transport.start()
        clients.append(client)
        return mcp_server, transport, client

    yield _connect

    for client in clients:
        await client.close()
