"""
Lumen Configuration: single source of truth for all settings.

Reads from environment variables (and a local .env file) with sensible
defaults. Every section is a frozen dataclass built by ``from_env()``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

# provider name -> env var holding its API key
API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


def _optional_str(name: str) -> str | None:
    raw = os.getenv(name, "").strip()
    return raw or None


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class LLMConfig:
    """Chat back end selection."""

    provider: str = "openai"
    api_key: str = ""
    model: str | None = None  # None -> provider default
    vision_model: str | None = None
    endpoint: str | None = None
    timeout: float = 60.0

    @classmethod
    def from_env(cls) -> LLMConfig:
        provider = os.getenv("LUMEN_LLM_PROVIDER", "openai").strip().lower()
        return cls(
            provider=provider,
            api_key=os.getenv(API_KEY_ENV.get(provider, "LUMEN_LLM_API_KEY"), ""),
            model=_optional_str("LUMEN_LLM_MODEL"),
            vision_model=_optional_str("LUMEN_LLM_VISION_MODEL"),
            endpoint=_optional_str("LUMEN_LLM_ENDPOINT"),
            timeout=float(os.getenv("LUMEN_LLM_TIMEOUT", "60.0")),
        )


@dataclass(frozen=True)
class ChatConfig:
    """Prompting and output-length settings for a turn."""

    system_prompt: str = "You are a friendly AI avatar."
    vision_system_prompt: str | None = None
    vision_prompt: str | None = None
    use_memory: bool = True
    memory_note: str | None = None
    max_tokens: int | None = None
    response_length: str | None = None
    vision_max_tokens: int | None = None
    vision_response_length: str | None = None

    @classmethod
    def from_env(cls) -> ChatConfig:
        return cls(
            system_prompt=os.getenv(
                "LUMEN_SYSTEM_PROMPT", "You are a friendly AI avatar."
            ),
            vision_system_prompt=_optional_str("LUMEN_VISION_SYSTEM_PROMPT"),
            vision_prompt=_optional_str("LUMEN_VISION_PROMPT"),
            use_memory=_flag("LUMEN_USE_MEMORY", True),
            memory_note=_optional_str("LUMEN_MEMORY_NOTE"),
            max_tokens=_optional_int("LUMEN_MAX_TOKENS"),
            response_length=_optional_str("LUMEN_RESPONSE_LENGTH"),
            vision_max_tokens=_optional_int("LUMEN_VISION_MAX_TOKENS"),
            vision_response_length=_optional_str("LUMEN_VISION_RESPONSE_LENGTH"),
        )


@dataclass(frozen=True)
class MemoryConfig:
    """Tiered memory settings. Durations are in seconds."""

    enable_summarization: bool = True
    short_term_seconds: float = 60.0
    mid_term_seconds: float = 240.0
    long_term_seconds: float = 540.0
    max_summary_length: int = 256
    retention_seconds: float = 3600.0
    storage: str = "none"  # none | json | sqlite
    storage_path: str = "lumen_memory.json"

    @classmethod
    def from_env(cls) -> MemoryConfig:
        return cls(
            enable_summarization=_flag("LUMEN_MEMORY_SUMMARIZE", True),
            short_term_seconds=float(os.getenv("LUMEN_MEMORY_SHORT_SECONDS", "60")),
            mid_term_seconds=float(os.getenv("LUMEN_MEMORY_MID_SECONDS", "240")),
            long_term_seconds=float(os.getenv("LUMEN_MEMORY_LONG_SECONDS", "540")),
            max_summary_length=int(os.getenv("LUMEN_MEMORY_SUMMARY_LENGTH", "256")),
            retention_seconds=float(
                os.getenv("LUMEN_MEMORY_RETENTION_SECONDS", "3600")
            ),
            storage=os.getenv("LUMEN_MEMORY_STORAGE", "none").strip().lower(),
            storage_path=os.getenv("LUMEN_MEMORY_PATH", "lumen_memory.json"),
        )


@dataclass(frozen=True)
class ToolsConfig:
    """Remote tool servers. ``mcp_servers`` holds raw ``{name, url, authorization_token}`` dicts."""

    mcp_servers: tuple[dict, ...] = ()
    mcp_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> ToolsConfig:
        raw = os.getenv("LUMEN_MCP_SERVERS", "").strip()
        servers = json.loads(raw) if raw else []
        if not isinstance(servers, list):
            raise ValueError("LUMEN_MCP_SERVERS must be a JSON list")
        return cls(
            mcp_servers=tuple(servers),
            mcp_timeout=float(os.getenv("LUMEN_MCP_TIMEOUT", "30.0")),
        )


@dataclass(frozen=True)
class LumenConfig:
    """Root configuration."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)

    @classmethod
    def from_env(cls) -> LumenConfig:
        return cls(
            llm=LLMConfig.from_env(),
            chat=ChatConfig.from_env(),
            memory=MemoryConfig.from_env(),
            tools=ToolsConfig.from_env(),
        )


# Singleton: import this wherever you need config
config = LumenConfig.from_env()


def reload_config() -> LumenConfig:
    """Rebuild the singleton from the current environment."""
    global config
    config = LumenConfig.from_env()
    return config
