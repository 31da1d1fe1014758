"""
Wire schemas: one tagged pydantic model family per back end.

- OpenAI: OpenAIChunk (streamed) / OpenAIResponse (one shot)
- Claude: ClaudeEvent, a union discriminated on ``type`` / ClaudeResponse
- Gemini: GeminiChunk, used for both streamed and one-shot bodies

Unknown fields are ignored. A frame that does not validate is a malformed
frame: decoders log it and move on.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# OPENAI (chat/completions)
# ═══════════════════════════════════════════════════════════════════════════════


class OpenAIFunctionDelta(WireModel):
    name: str | None = None
    arguments: str | None = None


class OpenAIToolCallDelta(WireModel):
    index: int = 0
    id: str | None = None
    type: str | None = None
    function: OpenAIFunctionDelta | None = None


class OpenAIDelta(WireModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[OpenAIToolCallDelta] | None = None


class OpenAIChunkChoice(WireModel):
    index: int = 0
    delta: OpenAIDelta = Field(default_factory=OpenAIDelta)
    finish_reason: str | None = None


class OpenAIError(WireModel):
    message: str = ""
    type: str | None = None


class OpenAIChunk(WireModel):
    backend: Literal["openai"] = "openai"
    choices: list[OpenAIChunkChoice] = Field(default_factory=list)
    error: OpenAIError | None = None


class OpenAIFunctionCall(WireModel):
    name: str
    arguments: str = ""


class OpenAIToolCall(WireModel):
    id: str
    type: str = "function"
    function: OpenAIFunctionCall


class OpenAIResponseMessage(WireModel):
    role: str = "assistant"
    content: str | None = None
    tool_calls: list[OpenAIToolCall] | None = None


class OpenAIChoice(WireModel):
    index: int = 0
    message: OpenAIResponseMessage
    finish_reason: str | None = None


class OpenAIResponse(WireModel):
    backend: Literal["openai"] = "openai"
    choices: list[OpenAIChoice] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# CLAUDE (v1/messages)
# ═══════════════════════════════════════════════════════════════════════════════


class ClaudeTextContent(WireModel):
    type: Literal["text"]
    text: str = ""


class ClaudeToolUseContent(WireModel):
    type: Literal["tool_use"]
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ClaudeToolResultContent(WireModel):
    type: Literal["tool_result"]
    tool_use_id: str
    content: Any = ""


class ClaudeThinkingContent(WireModel):
    """Extended-thinking blocks. Read and dropped, never shown to the user."""

    type: Literal["thinking", "redacted_thinking"]


ClaudeContent = Annotated[
    Union[
        ClaudeTextContent,
        ClaudeToolUseContent,
        ClaudeToolResultContent,
        ClaudeThinkingContent,
    ],
    Field(discriminator="type"),
]


class ClaudeTextDelta(WireModel):
    type: Literal["text_delta"]
    text: str = ""


class ClaudeInputJsonDelta(WireModel):
    type: Literal["input_json_delta"]
    partial_json: str = ""


class ClaudeThinkingDelta(WireModel):
    type: Literal["thinking_delta", "signature_delta"]


ClaudeDelta = Annotated[
    Union[ClaudeTextDelta, ClaudeInputJsonDelta, ClaudeThinkingDelta],
    Field(discriminator="type"),
]


class ClaudeMessageStart(WireModel):
    type: Literal["message_start"]
    message: dict[str, Any] = Field(default_factory=dict)


class ClaudeContentBlockStart(WireModel):
    type: Literal["content_block_start"]
    index: int
    content_block: ClaudeContent


class ClaudeContentBlockDelta(WireModel):
    type: Literal["content_block_delta"]
    index: int
    delta: ClaudeDelta


class ClaudeContentBlockStop(WireModel):
    type: Literal["content_block_stop"]
    index: int


class ClaudeMessageDelta(WireModel):
    type: Literal["message_delta"]
    delta: dict[str, Any] = Field(default_factory=dict)


class ClaudeMessageStop(WireModel):
    type: Literal["message_stop"]


class ClaudePing(WireModel):
    type: Literal["ping"]


class ClaudeErrorDetail(WireModel):
    type: str = "error"
    message: str = ""


class ClaudeStreamError(WireModel):
    type: Literal["error"]
    error: ClaudeErrorDetail = Field(default_factory=ClaudeErrorDetail)


ClaudeEvent = Annotated[
    Union[
        ClaudeMessageStart,
        ClaudeContentBlockStart,
        ClaudeContentBlockDelta,
        ClaudeContentBlockStop,
        ClaudeMessageDelta,
        ClaudeMessageStop,
        ClaudePing,
        ClaudeStreamError,
    ],
    Field(discriminator="type"),
]

claude_event_adapter: TypeAdapter[ClaudeEvent] = TypeAdapter(ClaudeEvent)
claude_content_adapter: TypeAdapter[ClaudeContent] = TypeAdapter(ClaudeContent)


class ClaudeResponse(WireModel):
    """One-shot body. Content blocks are validated one by one."""

    backend: Literal["claude"] = "claude"
    content: list[dict[str, Any]] = Field(default_factory=list)
    stop_reason: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# GEMINI (streamGenerateContent / generateContent)
# ═══════════════════════════════════════════════════════════════════════════════


class GeminiFunctionCall(WireModel):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class GeminiFunctionResponse(WireModel):
    name: str
    response: Any = None


class GeminiPart(WireModel):
    text: str | None = None
    function_call: GeminiFunctionCall | None = Field(None, alias="functionCall")
    function_response: GeminiFunctionResponse | None = Field(
        None, alias="functionResponse"
    )


class GeminiContent(WireModel):
    role: str | None = None
    parts: list[GeminiPart] = Field(default_factory=list)


class GeminiCandidate(WireModel):
    content: GeminiContent | None = None
    finish_reason: str | None = Field(None, alias="finishReason")


class GeminiError(WireModel):
    code: int | None = None
    message: str = ""


class GeminiChunk(WireModel):
    backend: Literal["gemini"] = "gemini"
    candidates: list[GeminiCandidate] = Field(default_factory=list)
    error: GeminiError | None = None
