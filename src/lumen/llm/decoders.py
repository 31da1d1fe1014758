"""
Stream decoders: one per back end, each normalizing into Completion.

Back end framing:
- OpenAI: ``data: {json}`` lines, terminated by ``data: [DONE]``. Tool-call
  fragments are keyed by index; argument slices are concatenated and parsed
  once at the end.
- Claude: typed SSE events. A tool_use block opens at content_block_start,
  collects input_json_delta fragments and is parsed at content_block_stop.
- Gemini: every line is one complete JSON document. Function calls arrive
  whole, never as fragments.

Text always comes first, merged into a single block, followed by tool blocks
in the order the provider finished them. The parse_*_response() functions
handle non-streamed bodies with the same block shape.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from lumen.core.errors import ProviderStreamError
from lumen.llm.contracts import (
    Block,
    Completion,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from lumen.llm.stream import StreamDecoder
from lumen.llm.wire import (
    ClaudeContentBlockDelta,
    ClaudeContentBlockStart,
    ClaudeContentBlockStop,
    ClaudeInputJsonDelta,
    ClaudeMessageStop,
    ClaudeResponse,
    ClaudeStreamError,
    ClaudeTextContent,
    ClaudeTextDelta,
    ClaudeToolResultContent,
    ClaudeToolUseContent,
    GeminiChunk,
    OpenAIChunk,
    OpenAIResponse,
    claude_content_adapter,
    claude_event_adapter,
)

logger = logging.getLogger(__name__)


def new_tool_use_id() -> str:
    return f"call_{uuid.uuid4().hex}"


def _stringify(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


@dataclass
class _PendingToolCall:
    id: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)


def _sse_payload(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for any other line."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


def _build(text: list[str], tools: list[Block]) -> Completion:
    blocks: list[Block] = []
    joined = "".join(text)
    if joined:
        blocks.append(TextBlock(joined))
    blocks.extend(tools)
    return Completion.from_blocks(blocks)


def _close_call(decoder: StreamDecoder, call: _PendingToolCall) -> ToolUseBlock | None:
    """Parse the concatenated arguments of a call, or skip it."""
    raw = "".join(call.arguments) or "{}"
    if not call.name:
        decoder.skip("tool call without a name", raw)
        return None
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError:
        decoder.skip(f"unparseable arguments for {call.name}", raw)
        return None
    if not isinstance(arguments, dict):
        decoder.skip(f"non-object arguments for {call.name}", raw)
        return None
    return ToolUseBlock(id=call.id or new_tool_use_id(), name=call.name, input=arguments)


# ═══════════════════════════════════════════════════════════════════════════════
# OPENAI
# ═══════════════════════════════════════════════════════════════════════════════


class OpenAIStreamDecoder(StreamDecoder):
    provider = "openai"

    def __init__(self) -> None:
        super().__init__()
        self._text: list[str] = []
        self._calls: dict[int, _PendingToolCall] = {}

    def feed_line(self, line: str) -> list[str]:
        payload = _sse_payload(line)
        if not payload:
            return []
        if payload == "[DONE]":
            self.done = True
            return []

        try:
            chunk = OpenAIChunk.model_validate_json(payload)
        except ValidationError as e:
            self.skip(f"{e.error_count()} validation error(s)", payload)
            return []
        if chunk.error is not None:
            raise ProviderStreamError(self.provider, chunk.error.message)

        fragments: list[str] = []
        for choice in chunk.choices:
            delta = choice.delta
            if delta.content:
                self._text.append(delta.content)
                fragments.append(delta.content)
            for fragment in delta.tool_calls or []:
                call = self._calls.setdefault(fragment.index, _PendingToolCall())
                if fragment.id and not call.id:
                    call.id = fragment.id
                if fragment.function is None:
                    continue
                if fragment.function.name and not call.name:
                    call.name = fragment.function.name
                if fragment.function.arguments:
                    call.arguments.append(fragment.function.arguments)
        return fragments

    def finish(self) -> Completion:
        tools: list[Block] = []
        for index in sorted(self._calls):
            block = _close_call(self, self._calls[index])
            if block is not None:
                tools.append(block)
        return _build(self._text, tools)


def parse_openai_response(data: dict[str, Any]) -> Completion:
    """Normalize a non-streamed chat/completions body."""
    response = OpenAIResponse.model_validate(data)
    text: list[str] = []
    tools: list[Block] = []
    for choice in response.choices[:1]:
        message = choice.message
        if message.content:
            text.append(message.content)
        for call in message.tool_calls or []:
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning(
                    "Dropping tool call %s with unparseable arguments",
                    call.function.name,
                    extra={"provider": "openai"},
                )
                continue
            tools.append(
                ToolUseBlock(id=call.id, name=call.function.name, input=arguments)
            )
    return _build(text, tools)


# ═══════════════════════════════════════════════════════════════════════════════
# CLAUDE
# ═══════════════════════════════════════════════════════════════════════════════


class ClaudeStreamDecoder(StreamDecoder):
    provider = "claude"

    def __init__(self) -> None:
        super().__init__()
        self._text: list[str] = []
        self._tools: list[Block] = []
        self._open: dict[int, _PendingToolCall] = {}

    def feed_line(self, line: str) -> list[str]:
        # "event:" lines repeat the type carried in the data payload
        payload = _sse_payload(line)
        if not payload:
            return []
        if payload == "[DONE]":
            self.done = True
            return []

        try:
            event = claude_event_adapter.validate_json(payload)
        except ValidationError as e:
            self.skip(f"{e.error_count()} validation error(s)", payload)
            return []

        if isinstance(event, ClaudeContentBlockStart):
            block = event.content_block
            if isinstance(block, ClaudeToolUseContent):
                self._open[event.index] = _PendingToolCall(id=block.id, name=block.name)
            elif isinstance(block, ClaudeToolResultContent):
                self._tools.append(
                    ToolResultBlock(block.tool_use_id, _stringify(block.content))
                )
            elif isinstance(block, ClaudeTextContent) and block.text:
                self._text.append(block.text)
                return [block.text]

        elif isinstance(event, ClaudeContentBlockDelta):
            delta = event.delta
            if isinstance(delta, ClaudeTextDelta):
                if delta.text:
                    self._text.append(delta.text)
                    return [delta.text]
            elif isinstance(delta, ClaudeInputJsonDelta):
                call = self._open.get(event.index)
                if call is None:
                    self.skip(f"argument delta for unknown block {event.index}", payload)
                else:
                    call.arguments.append(delta.partial_json)

        elif isinstance(event, ClaudeContentBlockStop):
            call = self._open.pop(event.index, None)
            if call is not None:
                tool_use = _close_call(self, call)
                if tool_use is not None:
                    self._tools.append(tool_use)

        elif isinstance(event, ClaudeMessageStop):
            self.done = True

        elif isinstance(event, ClaudeStreamError):
            raise ProviderStreamError(self.provider, event.error.message)

        return []

    def finish(self) -> Completion:
        # Blocks the provider never closed are parsed in index order
        for index in sorted(self._open):
            tool_use = _close_call(self, self._open[index])
            if tool_use is not None:
                self._tools.append(tool_use)
        self._open.clear()
        return _build(self._text, self._tools)


def parse_claude_response(data: dict[str, Any]) -> Completion:
    """Normalize a non-streamed v1/messages body."""
    response = ClaudeResponse.model_validate(data)
    text: list[str] = []
    tools: list[Block] = []
    for raw in response.content:
        try:
            block = claude_content_adapter.validate_python(raw)
        except ValidationError:
            logger.warning(
                "Skipping unsupported content block: %s",
                raw.get("type"),
                extra={"provider": "claude"},
            )
            continue
        if isinstance(block, ClaudeTextContent):
            text.append(block.text)
        elif isinstance(block, ClaudeToolUseContent):
            tools.append(ToolUseBlock(id=block.id, name=block.name, input=block.input))
        elif isinstance(block, ClaudeToolResultContent):
            tools.append(ToolResultBlock(block.tool_use_id, _stringify(block.content)))
    return _build(text, tools)


# ═══════════════════════════════════════════════════════════════════════════════
# GEMINI
# ═══════════════════════════════════════════════════════════════════════════════


def _gemini_blocks(chunk: GeminiChunk, text: list[str], tools: list[Block]) -> list[str]:
    fragments: list[str] = []
    for candidate in chunk.candidates:
        if candidate.content is None:
            continue
        for part in candidate.content.parts:
            if part.text:
                text.append(part.text)
                fragments.append(part.text)
            if part.function_call is not None:
                tools.append(
                    ToolUseBlock(
                        id=new_tool_use_id(),
                        name=part.function_call.name,
                        input=part.function_call.args,
                    )
                )
            if part.function_response is not None:
                # Gemini has no call ids; results are matched by function name
                tools.append(
                    ToolResultBlock(
                        tool_use_id=part.function_response.name,
                        content=_stringify(part.function_response.response),
                    )
                )
    return fragments


class GeminiStreamDecoder(StreamDecoder):
    provider = "gemini"

    def __init__(self) -> None:
        super().__init__()
        self._text: list[str] = []
        self._tools: list[Block] = []

    def feed_line(self, line: str) -> list[str]:
        payload = line.strip()
        if payload.startswith("data:"):
            payload = payload[5:].strip()
        if payload == "[DONE]":
            return []
        # Tolerate the punctuation of a JSON array body
        payload = payload.strip("[],").strip()
        if not payload:
            return []

        try:
            chunk = GeminiChunk.model_validate_json(payload)
        except ValidationError as e:
            self.skip(f"{e.error_count()} validation error(s)", payload)
            return []
        if chunk.error is not None:
            raise ProviderStreamError(self.provider, chunk.error.message)
        return _gemini_blocks(chunk, self._text, self._tools)

    def finish(self) -> Completion:
        return _build(self._text, self._tools)


def parse_gemini_response(data: dict[str, Any]) -> Completion:
    """Normalize a non-streamed generateContent body."""
    chunk = GeminiChunk.model_validate(data)
    text: list[str] = []
    tools: list[Block] = []
    _gemini_blocks(chunk, text, tools)
    return _build(text, tools)
