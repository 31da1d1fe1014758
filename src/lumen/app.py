"""
Lumen wiring: config -> registry -> chat service, memory and turn processor.

Usage:
    from lumen.app import create_turn_processor
    from lumen.core.config import config

    processor = create_turn_processor(config)
    if processor.memory_manager:
        await processor.memory_manager.load()
    result = await processor.process_text_chat("Hello!")
"""

from __future__ import annotations

import logging
from pathlib import Path

from lumen.core.config import LumenConfig, MemoryConfig
from lumen.core.signals import SignalBus
from lumen.memory.manager import MemoryManager
from lumen.memory.models import MemoryOptions
from lumen.memory.store import (
    JsonFileMemoryStorage,
    MemoryStorage,
    SQLiteMemoryStorage,
)
from lumen.providers.base import ChatServiceOptions
from lumen.providers.registry import ChatServiceRegistry
from lumen.tools.base import MCPServerConfig
from lumen.tools.executor import ToolExecutor
from lumen.turn.processor import TurnOptions, TurnProcessor

logger = logging.getLogger(__name__)


def create_memory_storage(memory_config: MemoryConfig) -> MemoryStorage | None:
    kind = memory_config.storage
    if kind == "none":
        return None
    if kind == "json":
        return JsonFileMemoryStorage(Path(memory_config.storage_path))
    if kind == "sqlite":
        return SQLiteMemoryStorage(Path(memory_config.storage_path))
    raise ValueError(f"Unknown memory storage: {kind}")


def create_turn_processor(
    config: LumenConfig,
    registry: ChatServiceRegistry | None = None,
    storage: MemoryStorage | None = None,
    signals: SignalBus | None = None,
    tool_executor: ToolExecutor | None = None,
) -> TurnProcessor:
    """Build a ready-to-use TurnProcessor from configuration.

    ``storage`` overrides the storage named in ``config.memory``. Tools
    registered on ``tool_executor`` are advertised to the model. MCP servers
    from ``config.tools`` are attached to the executor, creating one if needed.
    """
    registry = registry or ChatServiceRegistry.with_builtins()
    signals = signals or SignalBus()
    provider = config.llm.provider

    if config.tools.mcp_servers:
        tool_executor = tool_executor or ToolExecutor(mcp_timeout=config.tools.mcp_timeout)
        tool_executor.set_mcp_servers(
            [MCPServerConfig.from_dict(server) for server in config.tools.mcp_servers]
        )

    chat_options = ChatServiceOptions(
        api_key=config.llm.api_key,
        model=config.llm.model,
        vision_model=config.llm.vision_model,
        tools=tool_executor.definitions() if tool_executor else [],
        endpoint=config.llm.endpoint,
        timeout=config.llm.timeout,
    )
    chat_service = registry.create_chat_service(provider, chat_options)

    memory_manager = None
    if config.chat.use_memory:
        summarizer = registry.create_summarizer(
            provider,
            ChatServiceOptions(api_key=config.llm.api_key, endpoint=config.llm.endpoint),
        )
        memory_manager = MemoryManager(
            options=MemoryOptions.from_config(config.memory),
            summarizer=summarizer,
            storage=storage if storage is not None else create_memory_storage(config.memory),
            signals=signals,
        )

    logger.info(
        "Turn processor ready (provider=%s, model=%s, memory=%s, tools=%d)",
        provider,
        chat_service.model,
        config.memory.storage if memory_manager else "off",
        len(chat_options.tools),
        extra={"provider": provider},
    )
    return TurnProcessor(
        chat_service=chat_service,
        options=TurnOptions.from_config(config.chat),
        memory_manager=memory_manager,
        tool_executor=tool_executor,
        signals=signals,
    )
