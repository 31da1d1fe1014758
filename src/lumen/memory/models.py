"""
Memory models: tiers, records, options and the summarizer port.

At most one record per tier exists at a time. Tiers are keyed by how long
the conversation has been running (short < mid < long).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence, runtime_checkable

from lumen.llm.contracts import Message

DEFAULT_SUMMARY_PROMPT_TEMPLATE = """You are a skilled summarizing assistant.
Analyze the following conversation and produce a summary in the **same language** as the majority of the conversation:
- Summaries should highlight key points
- Stay concise (around {maxLength} characters if possible)
- No redundant expressions

If the conversation is in Japanese, summarize in Japanese.
If it's in English, summarize in English.
If it's in another language, summarize in that language.
"""


class MemoryType(str, Enum):
    # Declaration order is prompt order
    SHORT = "short"
    MID = "mid"
    LONG = "long"


@dataclass(frozen=True)
class MemoryRecord:
    type: MemoryType
    summary: str
    timestamp: float  # Unix seconds

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "summary": self.summary, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Any) -> MemoryRecord:
        """Rebuild a record. Raises ValueError for anything malformed."""
        if not isinstance(data, dict):
            raise ValueError(f"Memory record must be an object, got {type(data).__name__}")
        try:
            memory_type = MemoryType(data["type"])
            summary = data["summary"]
            timestamp = data["timestamp"]
        except KeyError as e:
            raise ValueError(f"Memory record missing field: {e.args[0]}") from None
        if not isinstance(summary, str):
            raise ValueError("Memory record summary must be a string")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError("Memory record timestamp must be a number")
        return cls(type=memory_type, summary=summary, timestamp=float(timestamp))


@dataclass(frozen=True)
class MemoryOptions:
    enable_summarization: bool = True
    short_term_seconds: float = 60.0
    mid_term_seconds: float = 240.0
    long_term_seconds: float = 540.0
    max_summary_length: int = 256
    retention_seconds: float = 3600.0
    summary_prompt_template: str | None = None

    def __post_init__(self) -> None:
        if not 0 < self.short_term_seconds < self.mid_term_seconds < self.long_term_seconds:
            raise ValueError(
                "Memory thresholds must be positive and ascending "
                f"(short={self.short_term_seconds}, mid={self.mid_term_seconds}, "
                f"long={self.long_term_seconds})"
            )
        if self.retention_seconds <= 0:
            raise ValueError("retention_seconds must be positive")

    def threshold(self, memory_type: MemoryType) -> float:
        return {
            MemoryType.SHORT: self.short_term_seconds,
            MemoryType.MID: self.mid_term_seconds,
            MemoryType.LONG: self.long_term_seconds,
        }[memory_type]

    @classmethod
    def from_config(cls, memory_config: Any) -> MemoryOptions:
        """Build options from a lumen.core.config.MemoryConfig section."""
        return cls(
            enable_summarization=memory_config.enable_summarization,
            short_term_seconds=memory_config.short_term_seconds,
            mid_term_seconds=memory_config.mid_term_seconds,
            long_term_seconds=memory_config.long_term_seconds,
            max_summary_length=memory_config.max_summary_length,
            retention_seconds=memory_config.retention_seconds,
        )


@runtime_checkable
class Summarizer(Protocol):
    async def summarize(
        self,
        messages: Sequence[Message],
        max_length: int = 256,
        custom_prompt: str | None = None,
    ) -> str:
        """Summarize a transcript. Never raises: failures return a fallback."""
        ...
