"""Tests for tool definitions and the concurrent ToolExecutor."""

import asyncio
import time

import httpx
import pytest

from lumen.core.errors import (
    DuplicateToolError,
    ToolTimeoutError,
    UnknownMCPServerError,
    UnknownToolError,
)
from lumen.core.metrics import metrics
from lumen.llm.contracts import TextBlock, ToolResultBlock, ToolUseBlock
from lumen.tools.base import MCPServerConfig, ToolConfig, ToolDefinition, ToolParam
from lumen.tools.executor import ToolExecutor, parse_mcp_tool_name


def tool(name, timeout_ms=None):
    return ToolDefinition(name=name, description=f"{name} tool", config=ToolConfig(timeout_ms))


def sleeper(seconds, value):
    async def handler(tool_input):
        await asyncio.sleep(seconds)
        return value

    return handler


# --- Definitions ---


class TestToolDefinition:
    def test_from_params(self):
        definition = ToolDefinition.from_params(
            "search",
            "Search the web",
            [
                ToolParam("query", "string", "Search query"),
                ToolParam("limit", "integer", "Max results", required=False),
                ToolParam("mode", "string", "Mode", enum=["fast", "deep"]),
            ],
            timeout_ms=5000,
        )
        assert definition.parameters == {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "limit": {"type": "integer", "description": "Max results"},
                "mode": {"type": "string", "description": "Mode", "enum": ["fast", "deep"]},
            },
            "required": ["query", "mode"],
        }
        assert definition.config.timeout_ms == 5000

    def test_schema_exports(self):
        definition = tool("clock")
        assert definition.to_openai_schema() == {
            "type": "function",
            "function": {
                "name": "clock",
                "description": "clock tool",
                "parameters": {"type": "object", "properties": {}},
            },
        }
        assert definition.to_claude_schema()["input_schema"] == {"type": "object", "properties": {}}
        assert definition.to_gemini_declaration()["name"] == "clock"

    def test_repr(self):
        assert repr(tool("clock")) == "<Tool:clock>"


# --- Registry ---


class TestRegistration:
    def test_register_and_list(self):
        executor = ToolExecutor()
        executor.register(tool("a"), lambda _: "a")
        executor.register(tool("b"), lambda _: "b")

        assert executor.names() == ["a", "b"]
        assert [d.name for d in executor.definitions()] == ["a", "b"]
        assert executor.get("a").name == "a"
        assert executor.get("zzz") is None

    def test_duplicate_name_rejected(self):
        executor = ToolExecutor()
        executor.register(tool("a"), lambda _: "a")
        with pytest.raises(DuplicateToolError, match="already registered"):
            executor.register(tool("a"), lambda _: "other")

    def test_unregister(self):
        executor = ToolExecutor()
        executor.register(tool("a"), lambda _: "a")
        executor.unregister("a")
        executor.unregister("never-registered")
        assert executor.names() == []


# --- Dispatch ---


class TestRun:
    @pytest.mark.asyncio
    async def test_results_follow_input_order(self):
        executor = ToolExecutor()
        executor.register(tool("slow"), sleeper(0.2, "slow-done"))
        executor.register(tool("fast"), sleeper(0.01, "fast-done"))

        results = await executor.run(
            [
                ToolUseBlock(id="1", name="slow"),
                ToolUseBlock(id="2", name="fast"),
            ]
        )

        assert results == [
            ToolResultBlock(tool_use_id="1", content="slow-done"),
            ToolResultBlock(tool_use_id="2", content="fast-done"),
        ]

    @pytest.mark.asyncio
    async def test_handlers_run_concurrently(self):
        executor = ToolExecutor()
        executor.register(tool("a"), sleeper(0.2, "a"))
        executor.register(tool("b"), sleeper(0.2, "b"))

        started = time.monotonic()
        await executor.run([ToolUseBlock("1", "a"), ToolUseBlock("2", "b")])
        assert time.monotonic() - started < 0.35

    @pytest.mark.asyncio
    async def test_non_tool_blocks_are_ignored(self):
        executor = ToolExecutor()
        executor.register(tool("a"), lambda _: "a")

        results = await executor.run([TextBlock("hello"), ToolUseBlock("1", "a")])
        assert results == [ToolResultBlock("1", "a")]
        assert await executor.run([TextBlock("only text")]) == []

    @pytest.mark.asyncio
    async def test_sync_handler_and_serialization(self):
        executor = ToolExecutor()
        executor.register(tool("echo"), lambda tool_input: {"got": tool_input["x"], "ok": True})

        results = await executor.run([ToolUseBlock("1", "echo", {"x": "héllo"})])
        assert results[0].content == '{"got": "héllo", "ok": true}'

    @pytest.mark.asyncio
    async def test_unknown_tool_rejects_batch(self):
        calls = []
        executor = ToolExecutor()
        executor.register(tool("a"), lambda _: calls.append("a"))

        with pytest.raises(UnknownToolError, match="Unhandled tool: missing"):
            await executor.run([ToolUseBlock("1", "a"), ToolUseBlock("2", "missing")])
        assert calls == []

    @pytest.mark.asyncio
    async def test_timeout_rejects_batch(self):
        executor = ToolExecutor()
        executor.register(tool("stuck", timeout_ms=1000), sleeper(2.0, "late"))

        with pytest.raises(ToolTimeoutError, match="stuck timed out"):
            await executor.run([ToolUseBlock("1", "stuck")])
        assert metrics.counter("tools.timeouts", {"tool": "stuck"}) == 1

    @pytest.mark.asyncio
    async def test_within_timeout_succeeds(self):
        executor = ToolExecutor()
        executor.register(tool("quick", timeout_ms=1000), sleeper(0.9, "made it"))

        results = await executor.run([ToolUseBlock("1", "quick")])
        assert results[0].content == "made it"

    @pytest.mark.asyncio
    async def test_failure_cancels_siblings(self):
        cancelled = asyncio.Event()

        async def long_running(_):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def failing(_):
            await asyncio.sleep(0.01)
            raise RuntimeError("tool crashed")

        executor = ToolExecutor()
        executor.register(tool("long"), long_running)
        executor.register(tool("bad"), failing)

        with pytest.raises(RuntimeError, match="tool crashed"):
            await executor.run([ToolUseBlock("1", "long"), ToolUseBlock("2", "bad")])
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_handler_timeout_error_without_limit_propagates(self):
        async def flaky(_):
            raise TimeoutError("upstream socket timeout")

        executor = ToolExecutor()
        executor.register(tool("net"), flaky)

        with pytest.raises(TimeoutError, match="upstream socket timeout") as excinfo:
            await executor.run([ToolUseBlock("1", "net")])
        assert not isinstance(excinfo.value, ToolTimeoutError)
        assert metrics.counter("tools.timeouts", {"tool": "net"}) == 0

    @pytest.mark.asyncio
    async def test_handler_timeout_error_within_limit_propagates(self):
        async def flaky(_):
            raise TimeoutError("upstream socket timeout")

        executor = ToolExecutor()
        executor.register(tool("net", timeout_ms=1000), flaky)

        with pytest.raises(TimeoutError, match="upstream socket timeout") as excinfo:
            await executor.run([ToolUseBlock("1", "net")])
        assert not isinstance(excinfo.value, ToolTimeoutError)


# --- MCP servers ---


def mcp_executor(transport, *servers):
    executor = ToolExecutor(http_client=transport.client())
    executor.set_mcp_servers(servers or [MCPServerConfig("wiki", "https://mcp.example.com")])
    return executor


@pytest.mark.parametrize(
    "name, expected",
    [
        ("mcp_wiki_search", ("wiki", "search")),
        ("mcp_wiki_read_page", ("wiki", "read_page")),
        ("mcp_wiki", None),
        ("search", None),
    ],
)
def test_parse_mcp_tool_name(name, expected):
    assert parse_mcp_tool_name(name) == expected


class TestMCPTools:
    @pytest.mark.asyncio
    async def test_posts_input_with_bearer_token(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(200, json={"hits": ["Python"]}))
        executor = mcp_executor(
            transport, MCPServerConfig("wiki", "https://mcp.example.com", "tok-1")
        )

        results = await executor.run(
            [ToolUseBlock("call_1", "mcp_wiki_read_page", {"title": "Python"})]
        )

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://mcp.example.com/tools/read_page"
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert transport.body() == {"title": "Python"}
        assert results == [ToolResultBlock("call_1", '{"hits": ["Python"]}')]

    @pytest.mark.asyncio
    async def test_string_result_and_no_token(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(200, json="plain answer"))
        executor = mcp_executor(transport)

        results = await executor.run([ToolUseBlock("1", "mcp_wiki_search")])

        assert "Authorization" not in transport.requests[0].headers
        assert transport.body() == {}
        assert results[0].content == "plain answer"

    @pytest.mark.asyncio
    async def test_http_error_becomes_result_block(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(503, text="down"))
        executor = mcp_executor(transport)

        results = await executor.run([ToolUseBlock("1", "mcp_wiki_search")])

        assert results[0].content == (
            "MCP tool execution failed: MCP server responded with 503: Service Unavailable"
        )
        assert metrics.counter("tools.mcp_failures", {"tool": "mcp_wiki_search"}) == 1

    @pytest.mark.asyncio
    async def test_connection_error_becomes_result_block(self, mock_http):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        executor = mcp_executor(mock_http(refuse))

        results = await executor.run([ToolUseBlock("1", "mcp_wiki_search")])

        assert results[0].content == "MCP tool execution failed: connection refused"

    @pytest.mark.asyncio
    async def test_mixed_with_local_tools_keeps_order(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(200, json={"ok": True}))
        executor = mcp_executor(transport)
        executor.register(tool("local"), lambda _: "here")

        results = await executor.run(
            [ToolUseBlock("1", "mcp_wiki_search"), ToolUseBlock("2", "local")]
        )

        assert [r.content for r in results] == ['{"ok": true}', "here"]

    @pytest.mark.asyncio
    async def test_unknown_server_rejects_batch(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(200, json={}))
        executor = mcp_executor(transport)
        ran = []
        executor.register(tool("local"), lambda _: ran.append(1))

        with pytest.raises(UnknownMCPServerError, match="'docs' not found"):
            await executor.run(
                [ToolUseBlock("1", "local"), ToolUseBlock("2", "mcp_docs_search")]
            )
        assert ran == []
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_malformed_mcp_name_is_unknown(self, mock_http):
        executor = mcp_executor(mock_http(lambda request: httpx.Response(200, json={})))
        with pytest.raises(UnknownToolError):
            await executor.run([ToolUseBlock("1", "mcp_wiki")])

    @pytest.mark.asyncio
    async def test_stop_keeps_injected_client_open(self, mock_http):
        executor = mcp_executor(mock_http(lambda request: httpx.Response(200, json={})))
        client = executor.client

        await executor.stop()

        assert executor.client is client
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_is_created_and_closed(self):
        executor = ToolExecutor(mcp_timeout=3.0)
        client = executor._http()
        assert client.timeout.read == 3.0

        await executor.stop()

        assert client.is_closed
        assert executor.client is None


def test_mcp_server_config_from_dict():
    server = MCPServerConfig.from_dict(
        {"name": "wiki", "url": "https://mcp.example.com/", "authorization_token": ""}
    )
    assert server == MCPServerConfig("wiki", "https://mcp.example.com")
    with pytest.raises(ValueError):
        MCPServerConfig.from_dict({"url": "https://mcp.example.com"})
