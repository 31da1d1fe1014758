"""Tests for environment-driven configuration."""

import pytest

import lumen.core.config as config_module
from lumen.core.config import (
    ChatConfig,
    LLMConfig,
    LumenConfig,
    MemoryConfig,
    ToolsConfig,
    reload_config,
)

_VARS = [
    "LUMEN_LLM_PROVIDER",
    "LUMEN_LLM_MODEL",
    "LUMEN_LLM_VISION_MODEL",
    "LUMEN_LLM_ENDPOINT",
    "LUMEN_LLM_TIMEOUT",
    "LUMEN_SYSTEM_PROMPT",
    "LUMEN_USE_MEMORY",
    "LUMEN_MAX_TOKENS",
    "LUMEN_RESPONSE_LENGTH",
    "LUMEN_MEMORY_SUMMARIZE",
    "LUMEN_MEMORY_SHORT_SECONDS",
    "LUMEN_MEMORY_STORAGE",
    "LUMEN_MEMORY_PATH",
    "LUMEN_MCP_SERVERS",
    "LUMEN_MCP_TIMEOUT",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


class TestLLMConfig:
    def test_defaults(self):
        cfg = LLMConfig.from_env()
        assert cfg.provider == "openai"
        assert cfg.model is None
        assert cfg.endpoint is None
        assert cfg.timeout == 60.0

    def test_api_key_follows_provider(self, monkeypatch):
        monkeypatch.setenv("LUMEN_LLM_PROVIDER", "Claude")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai-test")

        cfg = LLMConfig.from_env()
        assert cfg.provider == "claude"
        assert cfg.api_key == "sk-ant-test"

    def test_model_overrides(self, monkeypatch):
        monkeypatch.setenv("LUMEN_LLM_MODEL", "gpt-4o")
        monkeypatch.setenv("LUMEN_LLM_TIMEOUT", "12.5")
        cfg = LLMConfig.from_env()
        assert cfg.model == "gpt-4o"
        assert cfg.timeout == 12.5


class TestChatConfig:
    def test_defaults(self):
        cfg = ChatConfig.from_env()
        assert cfg.system_prompt == "You are a friendly AI avatar."
        assert cfg.use_memory is True
        assert cfg.max_tokens is None
        assert cfg.response_length is None

    def test_flags_and_numbers(self, monkeypatch):
        monkeypatch.setenv("LUMEN_USE_MEMORY", "false")
        monkeypatch.setenv("LUMEN_MAX_TOKENS", "150")
        monkeypatch.setenv("LUMEN_RESPONSE_LENGTH", "short")
        cfg = ChatConfig.from_env()
        assert cfg.use_memory is False
        assert cfg.max_tokens == 150
        assert cfg.response_length == "short"

    def test_blank_flag_keeps_default(self, monkeypatch):
        monkeypatch.setenv("LUMEN_USE_MEMORY", "  ")
        assert ChatConfig.from_env().use_memory is True


class TestMemoryConfig:
    def test_defaults(self):
        cfg = MemoryConfig.from_env()
        assert (cfg.short_term_seconds, cfg.mid_term_seconds, cfg.long_term_seconds) == (
            60.0,
            240.0,
            540.0,
        )
        assert cfg.storage == "none"

    def test_storage_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LUMEN_MEMORY_STORAGE", " SQLite ")
        monkeypatch.setenv("LUMEN_MEMORY_PATH", "/tmp/mem.db")
        monkeypatch.setenv("LUMEN_MEMORY_SHORT_SECONDS", "30")
        cfg = MemoryConfig.from_env()
        assert cfg.storage == "sqlite"
        assert cfg.storage_path == "/tmp/mem.db"
        assert cfg.short_term_seconds == 30.0


class TestToolsConfig:
    def test_defaults(self):
        cfg = ToolsConfig.from_env()
        assert cfg.mcp_servers == ()
        assert cfg.mcp_timeout == 30.0

    def test_mcp_servers_from_json(self, monkeypatch):
        monkeypatch.setenv(
            "LUMEN_MCP_SERVERS",
            '[{"name": "wiki", "url": "https://mcp.example.com", "authorization_token": "t"}]',
        )
        monkeypatch.setenv("LUMEN_MCP_TIMEOUT", "5")
        cfg = ToolsConfig.from_env()
        assert cfg.mcp_servers[0]["name"] == "wiki"
        assert cfg.mcp_timeout == 5.0

    def test_mcp_servers_must_be_a_list(self, monkeypatch):
        monkeypatch.setenv("LUMEN_MCP_SERVERS", '{"name": "wiki"}')
        with pytest.raises(ValueError, match="JSON list"):
            ToolsConfig.from_env()


def test_reload_config_replaces_singleton(monkeypatch):
    previous = config_module.config
    monkeypatch.setenv("LUMEN_LLM_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "gm-test")
    try:
        cfg = reload_config()
        assert isinstance(cfg, LumenConfig)
        assert config_module.config is cfg
        assert cfg.llm.provider == "gemini"
        assert cfg.llm.api_key == "gm-test"
    finally:
        config_module.config = previous


def test_config_is_frozen():
    cfg = LumenConfig()
    with pytest.raises(AttributeError):
        cfg.llm = LLMConfig(provider="claude")  # type: ignore[misc]
