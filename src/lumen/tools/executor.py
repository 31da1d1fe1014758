"""
Tool Executor: register handlers, dispatch model-requested calls.

All tool-use blocks in one run() call execute concurrently. Results come
back in the order of the input blocks, independent of completion order.
One unknown name, failing handler or timeout rejects the whole batch: the
other handlers still running are cancelled and no partial results are
returned.

Names of the form ``mcp_{server}_{tool}`` that are not registered locally
go to the configured MCP server as ``POST {url}/tools/{tool}``. A failing
MCP call does not reject the batch; its result block carries the error.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from typing import Any, Iterable, Sequence

import httpx

from lumen.core.errors import (
    DuplicateToolError,
    ToolTimeoutError,
    UnknownMCPServerError,
    UnknownToolError,
)
from lumen.core.metrics import metrics
from lumen.llm.contracts import Block, ToolResultBlock, ToolUseBlock
from lumen.tools.base import MCPServerConfig, ToolDefinition, ToolHandler

logger = logging.getLogger(__name__)

MCP_PREFIX = "mcp_"


def parse_mcp_tool_name(name: str) -> tuple[str, str] | None:
    """Split ``mcp_{server}_{tool}`` into (server, tool). None for other names."""
    if not name.startswith(MCP_PREFIX):
        return None
    parts = name.split("_")
    if len(parts) < 3 or not parts[1] or not parts[2]:
        return None
    return parts[1], "_".join(parts[2:])


class ToolExecutor:
    """Central registry and dispatcher for tool handlers."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, mcp_timeout: float = 30.0):
        self._tools: dict[str, tuple[ToolDefinition, ToolHandler]] = {}
        self._mcp_servers: dict[str, MCPServerConfig] = {}
        self.mcp_timeout = mcp_timeout
        self.client = http_client
        self._owns_client = http_client is None

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        """Register a tool. A name can only be registered once."""
        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = (definition, handler)
        logger.info("Registered tool: %s", definition.name, extra={"tool": definition.name})

    def unregister(self, name: str) -> None:
        """Remove a tool. Safe to call for unknown names."""
        self._tools.pop(name, None)

    def get(self, name: str) -> ToolDefinition | None:
        entry = self._tools.get(name)
        return entry[0] if entry else None

    def definitions(self) -> list[ToolDefinition]:
        """All registered definitions, in registration order."""
        return [definition for definition, _ in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools.keys())

    # --- MCP servers ---

    def set_mcp_servers(self, servers: Sequence[MCPServerConfig]) -> None:
        """Replace the MCP server list. Later entries win on duplicate names."""
        self._mcp_servers = {server.name: server for server in servers}
        logger.info("MCP servers: %s", list(self._mcp_servers) or "none")

    @property
    def mcp_servers(self) -> list[MCPServerConfig]:
        return list(self._mcp_servers.values())

    async def stop(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self.client and self._owns_client:
            await self.client.aclose()
        if self._owns_client:
            self.client = None

    # --- Dispatch ---

    async def run(self, blocks: Iterable[Block]) -> list[ToolResultBlock]:
        """Execute every ToolUseBlock in ``blocks`` and return ordered results."""
        uses = [b for b in blocks if isinstance(b, ToolUseBlock)]
        if not uses:
            return []
        for use in uses:
            self._check_known(use.name)

        tasks = [asyncio.ensure_future(self._dispatch(use)) for use in uses]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _check_known(self, name: str) -> None:
        if name in self._tools:
            return
        mcp = parse_mcp_tool_name(name)
        if mcp is None:
            metrics.inc("tools.unknown", labels={"tool": name})
            raise UnknownToolError(name)
        if mcp[0] not in self._mcp_servers:
            metrics.inc("tools.unknown", labels={"tool": name})
            raise UnknownMCPServerError(mcp[0])

    async def _dispatch(self, use: ToolUseBlock) -> ToolResultBlock:
        if use.name not in self._tools:
            return await self._dispatch_mcp(use)

        definition, handler = self._tools[use.name]
        timeout_ms = definition.config.timeout_ms
        started = time.monotonic()
        metrics.inc("tools.dispatched", labels={"tool": use.name})
        logger.info(
            "Dispatching tool: %s with args: %s",
            use.name,
            list(use.input.keys()),
            extra={"tool": use.name},
        )

        if timeout_ms is None:
            result = await _invoke(handler, use.input)
        else:
            result = await self._invoke_with_timeout(use.name, handler, use.input, timeout_ms)

        elapsed_ms = (time.monotonic() - started) * 1000
        metrics.observe("tools.latency_ms", elapsed_ms, labels={"tool": use.name})
        return ToolResultBlock(tool_use_id=use.id, content=_serialize(result))

    async def _invoke_with_timeout(
        self, name: str, handler: ToolHandler, tool_input: dict[str, Any], timeout_ms: int
    ) -> Any:
        # A TimeoutError raised by the handler itself propagates unchanged
        task = asyncio.ensure_future(_invoke(handler, tool_input))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except BaseException:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        metrics.inc("tools.timeouts", labels={"tool": name})
        logger.warning(
            "Tool %s timed out after %dms",
            name,
            timeout_ms,
            extra={"tool": name, "status": "timeout"},
        )
        raise ToolTimeoutError(name, timeout_ms)

    async def _dispatch_mcp(self, use: ToolUseBlock) -> ToolResultBlock:
        server_name, tool_name = parse_mcp_tool_name(use.name) or ("", "")
        server = self._mcp_servers[server_name]
        headers = {"Content-Type": "application/json"}
        if server.authorization_token:
            headers["Authorization"] = f"Bearer {server.authorization_token}"

        metrics.inc("tools.dispatched", labels={"tool": use.name})
        logger.info(
            "Dispatching MCP tool: %s on %s",
            tool_name,
            server.name,
            extra={"tool": use.name},
        )
        try:
            client = self._http()
            response = await client.post(
                f"{server.url}/tools/{tool_name}",
                headers=headers,
                json=use.input or {},
            )
            if response.status_code >= 400:
                raise httpx.HTTPStatusError(
                    f"MCP server responded with {response.status_code}: {response.reason_phrase}",
                    request=response.request,
                    response=response,
                )
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            metrics.inc("tools.mcp_failures", labels={"tool": use.name})
            logger.warning(
                "MCP tool %s failed: %s",
                use.name,
                e,
                extra={"tool": use.name, "status": "error"},
            )
            return ToolResultBlock(
                tool_use_id=use.id, content=f"MCP tool execution failed: {e}"
            )
        return ToolResultBlock(tool_use_id=use.id, content=_serialize(result))

    def _http(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=httpx.Timeout(self.mcp_timeout))
        return self.client


async def _invoke(handler: ToolHandler, tool_input: dict[str, Any]) -> Any:
    result = handler(tool_input)
    if inspect.isawaitable(result):
        result = await result
    return result


def _serialize(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)
