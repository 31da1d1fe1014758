"""
LLM Contracts: the message and block shapes shared by every back end.

Input side:
- Message: one transcript entry (system / user / assistant)
- VisionMessage: a one-turn message carrying text and image parts
- ToolCallMessage / ToolResultMessage: the tool exchange inside one turn

Output side:
- TextBlock, ToolUseBlock, ToolResultBlock: units of model output
- Completion: the normalized result of one model call

Each chat service maps these onto its own wire vocabulary. Nothing in this
module knows about HTTP or JSON framing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

Role = Literal["system", "user", "assistant"]


# ═══════════════════════════════════════════════════════════════════════════════
# INPUT MESSAGES
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Message:
    """One conversational turn. Timestamps are Unix seconds."""

    role: Role
    content: str
    timestamp: float | None = None


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    url: str  # http(s) URL or data: URL
    detail: Literal["low", "high"] = "low"


@dataclass(frozen=True)
class VisionMessage:
    """A message whose content may mix text and images. Never persisted."""

    role: Role
    content: str | tuple[TextPart | ImagePart, ...]

    @property
    def parts(self) -> tuple[TextPart | ImagePart, ...]:
        if isinstance(self.content, str):
            return (TextPart(self.content),)
        return self.content


# ═══════════════════════════════════════════════════════════════════════════════
# OUTPUT BLOCKS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: Literal["text"] = field(default="text", init=False)


@dataclass(frozen=True)
class ToolUseBlock:
    """A model-requested tool call. ``id`` must be echoed in the result."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = field(default="tool_use", init=False)


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: str
    type: Literal["tool_result"] = field(default="tool_result", init=False)


Block = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True)
class ToolCallMessage:
    """The assistant's tool request, replayed to the model in a follow-up call."""

    tool_uses: tuple[ToolUseBlock, ...]
    text: str = ""


@dataclass(frozen=True)
class ToolResultMessage:
    """Results for a ToolCallMessage, in the same order."""

    results: tuple[ToolResultBlock, ...]


ChatMessage = Union[Message, VisionMessage, ToolCallMessage, ToolResultMessage]


class StopReason(str, Enum):
    TOOL_USE = "tool_use"
    END = "end"


@dataclass(frozen=True)
class Completion:
    """Normalized result of one model call."""

    blocks: tuple[Block, ...]
    stop_reason: StopReason

    @classmethod
    def from_blocks(cls, blocks: list[Block] | tuple[Block, ...]) -> Completion:
        blocks = tuple(blocks)
        has_tool_use = any(isinstance(b, ToolUseBlock) for b in blocks)
        return cls(
            blocks=blocks,
            stop_reason=StopReason.TOOL_USE if has_tool_use else StopReason.END,
        )

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.blocks if isinstance(b, ToolResultBlock)]


# ═══════════════════════════════════════════════════════════════════════════════
# OUTPUT LENGTH
# ═══════════════════════════════════════════════════════════════════════════════


class ChatResponseLength(str, Enum):
    VERY_SHORT = "very_short"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


MAX_TOKENS_BY_LENGTH: dict[ChatResponseLength, int] = {
    ChatResponseLength.VERY_SHORT: 40,
    ChatResponseLength.SHORT: 100,
    ChatResponseLength.MEDIUM: 200,
    ChatResponseLength.LONG: 300,
}


def max_tokens_for_length(length: ChatResponseLength | str | None) -> int | None:
    """Look up a preset. Unknown or missing presets return None."""
    if length is None:
        return None
    try:
        return MAX_TOKENS_BY_LENGTH[ChatResponseLength(length)]
    except ValueError:
        return None
