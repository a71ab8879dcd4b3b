"""Tests for MCP method dispatch."""
import pytest

from mcp_toolserver.config import ServerSettings
from mcp_toolserver.registry import ToolDescriptor
from mcp_toolserver.server import McpServer
from mcp_toolserver.utils.errors import DuplicateToolNameError

from conftest import blank_message, complex_result, double, echo, process_order, request, tool


class TestConstruction:
    def test_duplicate_tool_names_fail_before_any_request(self):
        with pytest.raises(DuplicateToolNameError) as exc_info:
            McpServer([
                ToolDescriptor(name="duplicate", handler=lambda: "first"),
                ToolDescriptor(name="duplicate", handler=lambda: "second"),
            ])
        assert "Tool names must be unique" in str(exc_info.value)

    def test_registers_methods(self, server):
        assert set(server.jsonrpc_handler.methods) == {"initialize", "ping", "tools/list", "tools/call"}


class TestEnvelope:
    """Messages that get no reply or a protocol error."""

    @pytest.mark.asyncio
    async def test_null_message_gets_no_reply(self, server):
        assert await server.handle(None) is None

    @pytest.mark.asyncio
    async def test_empty_object_gets_no_reply(self, server):
        assert await server.handle({}) is None

    @pytest.mark.asyncio
    async def test_missing_id_gets_no_reply(self, server):
        assert await server.handle({"jsonrpc": "2.0", "method": "tools/list"}) is None

    @pytest.mark.asyncio
    async def test_non_numeric_id_gets_no_reply(self, server):
        message = {"jsonrpc": "2.0", "id": "string-id", "method": "tools/list"}
        assert await server.handle(message) is None

    @pytest.mark.asyncio
    async def test_unknown_method(self, server):
        response = await server.handle(request("does/not/exist"))

        assert response["id"] == 1
        assert "result" not in response
        assert response["error"]["code"] == -32601
        assert "Method not found" in response["error"]["message"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["   ", 123])
    async def test_blank_or_non_text_method(self, server, method):
        response = await server.handle(request(method))

        assert response["error"]["code"] == -32600
        assert "Invalid Request" in response["error"]["message"]


class TestInitialize:
    @pytest.mark.asyncio
    async def test_default_protocol_version(self, server):
        response = await server.handle(request("initialize"))
        result = response["result"]

        assert result["protocolVersion"] == "2025-06-18"
        assert result["capabilities"]["tools"] == {"listChanged": False}
        assert result["serverInfo"]["name"] == "mcp-toolserver"
        assert result["serverInfo"]["version"]

    @pytest.mark.asyncio
    async def test_requested_protocol_version_is_echoed(self, server):
        response = await server.handle(request("initialize", {"protocolVersion": "2024-11-05"}))
        assert response["result"]["protocolVersion"] == "2024-11-05"

    @pytest.mark.asyncio
    async def test_non_text_protocol_version_uses_default(self, server):
        response = await server.handle(request("initialize", {"protocolVersion": 5}))
        assert response["result"]["protocolVersion"] == "2025-06-18"

    @pytest.mark.asyncio
    async def test_non_object_params(self, server):
        response = await server.handle(request("initialize", "not-an-object"))
        assert response["result"]["protocolVersion"] == "2025-06-18"

    @pytest.mark.asyncio
    async def test_settings_drive_server_info(self, calculator_tools):
        settings = ServerSettings(server_name="calc", server_version="9.9", protocol_version="2099-01-01")
        server = McpServer(calculator_tools, settings=settings)

        result = (await server.handle(request("initialize")))["result"]

        assert result["serverInfo"] == {"name": "calc", "version": "9.9"}
        assert result["protocolVersion"] == "2099-01-01"


class TestPing:
    @pytest.mark.asyncio
    async def test_ping(self, server):
        response = await server.handle(request("ping", id=2))
        assert response == {"jsonrpc": "2.0", "id": 2, "result": {}}


class TestToolsList:
    @pytest.mark.asyncio
    async def test_list_tools(self, server):
        response = await server.handle(request("tools/list", {}))
        tools = response["result"]["tools"]

        assert [tool["name"] for tool in tools] == ["add", "echo", "fail", "noop"]
        add_tool = tools[0]
        assert add_tool["description"] == "Add two integers."
        assert add_tool["inputSchema"]["type"] == "object"
        assert set(add_tool["inputSchema"]["properties"]) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_listing_is_idempotent(self, server):
        first = await server.handle(request("tools/list", id=1))
        second = await server.handle(request("tools/list", id=2))

        assert first["result"] == second["result"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [None, "not-an-object", {"cursor": "abc"}, {"cursor": 3}])
    async def test_any_params_shape(self, server, params):
        response = await server.handle(request("tools/list", params))
        assert len(response["result"]["tools"]) == 4


class TestToolsCall:
    @pytest.mark.asyncio
    async def test_execute_tool_call(self, server):
        arguments = {"a": 1, "b": 2, "arg0": 1, "arg1": 2}
        response = await server.handle(request("tools/call", {"name": "add", "arguments": arguments}))
        result = response["result"]

        assert "isError" not in result
        assert result["content"] == [{"type": "text", "text": "3"}]

    @pytest.mark.asyncio
    async def test_positional_arguments(self, server):
        response = await server.handle(
            request("tools/call", {"name": "add", "arguments": {"arg0": 40, "arg1": 2}})
        )
        assert response["result"]["content"][0]["text"] == "42"

    @pytest.mark.asyncio
    async def test_params_missing(self, server):
        response = await server.handle(request("tools/call"))

        assert response["error"]["code"] == -32602
        assert response["error"]["message"] == "Invalid params"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"arguments": {}},
        {"name": None},
        {"name": "  "},
        {"name": {"tool": "add"}},
        {"name": ["add"]},
        {"name": 5},
    ])
    async def test_tool_name_missing(self, server, params):
        response = await server.handle(request("tools/call", params))

        assert response["error"]["code"] == -32602
        assert "Missing tool name" in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_tool_error(self, server):
        response = await server.handle(
            request("tools/call", {"name": "doesNotExist", "arguments": {}})
        )

        assert "error" not in response
        result = response["result"]
        assert result["isError"] is True
        assert len(result["content"]) == 1
        assert "Unknown tool" in result["content"][0]["text"]
        assert "doesNotExist" in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_tool_execution_failure(self, server):
        response = await server.handle(
            request("tools/call", {"name": "fail", "arguments": {"input": "boom", "arg0": "boom"}})
        )
        result = response["result"]

        assert result["isError"] is True
        assert "Invalid input" in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_blank_exception_message_reports_type(self):
        server = McpServer([tool(blank_message, name="blankMessage")])

        response = await server.handle(
            request("tools/call", {"name": "blankMessage", "arguments": {}})
        )
        result = response["result"]

        assert result["isError"] is True
        assert len(result["content"]) == 1
        assert "RuntimeError" in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_arguments_field_missing(self, server):
        response = await server.handle(request("tools/call", {"name": "echo"}))
        result = response["result"]

        assert result["isError"] is True
        assert len(result["content"]) == 1
        assert "Missing required argument: input" in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_arguments_not_an_object(self, server):
        response = await server.handle(
            request("tools/call", {"name": "echo", "arguments": "not-an-object"})
        )
        result = response["result"]

        assert result["isError"] is True
        assert "Missing required argument" in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_null_arguments_for_tool_without_parameters(self, server):
        response = await server.handle(request("tools/call", {"name": "noop", "arguments": None}))
        result = response["result"]

        assert "isError" not in result
        assert result["content"][0]["text"] == "Success"

    @pytest.mark.asyncio
    async def test_complex_return_value_serialized(self):
        server = McpServer([tool(complex_result, name="complex")])

        response = await server.handle(request("tools/call", {"name": "complex", "arguments": {}}))
        result = response["result"]

        assert "isError" not in result
        assert "value" in result["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_echo_round_trip(self):
        server = McpServer([tool(echo)])
        text = "multi\nline \"quoted\" ünïcode"

        response = await server.handle(
            request("tools/call", {"name": "echo", "arguments": {"input": text}})
        )

        assert response["result"]["content"][0]["text"] == text

    @pytest.mark.asyncio
    async def test_complex_data_arguments(self):
        """Nested objects and lists reach the tool as their declared types."""
        server = McpServer([tool(process_order, name="processOrder")])
        arguments = {
            "order_id": "ORD-1",
            "items": ["book", "pen"],
            "customer": {"name": "John", "email": "john@example.com"},
        }

        response = await server.handle(
            request("tools/call", {"name": "processOrder", "arguments": arguments})
        )
        result = response["result"]

        assert "isError" not in result
        assert result["content"][0]["text"] == "Processed ORD-1 for John with 2 items"

    @pytest.mark.asyncio
    async def test_numeric_string_argument_coerced(self):
        server = McpServer([tool(double)])

        response = await server.handle(
            request("tools/call", {"name": "double", "arguments": {"n": "21"}})
        )

        assert response["result"]["content"][0]["text"] == "42"

    @pytest.mark.asyncio
    async def test_invalid_argument_type_is_tool_error(self):
        server = McpServer([tool(double)])

        response = await server.handle(
            request("tools/call", {"name": "double", "arguments": {"n": "twenty"}})
        )
        result = response["result"]

        assert "error" not in response
        assert result["isError"] is True
        assert "Invalid arguments" in result["content"][0]["text"]
