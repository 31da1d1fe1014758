"""
Claude Chat Service: the Anthropic messages API over raw HTTP.

System messages are lifted into the top-level ``system`` field (joined by
blank lines). ``max_tokens`` is mandatory on this API, so the service falls
back to its own default. Images become ``image`` blocks with a base64
source for data URLs and a url source otherwise.
"""

from __future__ import annotations

from typing import Any, Sequence

from lumen.llm.contracts import (
    ChatMessage,
    Completion,
    ImagePart,
    Message,
    TextPart,
    ToolCallMessage,
    ToolResultMessage,
    VisionMessage,
)
from lumen.llm.decoders import ClaudeStreamDecoder, parse_claude_response
from lumen.llm.stream import StreamDecoder
from lumen.providers.base import (
    ChatService,
    ChatServiceOptions,
    ChatServiceProvider,
    parse_data_url,
)
from lumen.providers.models import (
    ANTHROPIC_VERSION,
    CLAUDE_MODELS,
    CLAUDE_VISION_MODELS,
    ENDPOINT_CLAUDE_MESSAGES,
    MODEL_CLAUDE_3_HAIKU,
)
from lumen.providers.summarizers import ClaudeSummarizer


def _image_block(part: ImagePart) -> dict[str, Any]:
    inline = parse_data_url(part.url)
    if inline is not None:
        media_type, data = inline
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        }
    return {"type": "image", "source": {"type": "url", "url": part.url}}


def to_claude_messages(
    messages: Sequence[ChatMessage],
) -> tuple[str, list[dict[str, Any]]]:
    """Return (system prompt, messages) in Anthropic's shape."""
    system: list[str] = []
    converted: list[dict[str, Any]] = []
    for message in messages:
        if isinstance(message, (Message, VisionMessage)) and message.role == "system":
            if isinstance(message.content, str):
                system.append(message.content)
            else:
                system.extend(p.text for p in message.content if isinstance(p, TextPart))
        elif isinstance(message, Message):
            converted.append({"role": message.role, "content": message.content})
        elif isinstance(message, VisionMessage):
            if isinstance(message.content, str):
                converted.append({"role": message.role, "content": message.content})
                continue
            blocks: list[dict[str, Any]] = []
            for part in message.content:
                if isinstance(part, TextPart):
                    blocks.append({"type": "text", "text": part.text})
                else:
                    blocks.append(_image_block(part))
            converted.append({"role": message.role, "content": blocks})
        elif isinstance(message, ToolCallMessage):
            content: list[dict[str, Any]] = []
            if message.text:
                content.append({"type": "text", "text": message.text})
            content.extend(
                {"type": "tool_use", "id": use.id, "name": use.name, "input": use.input}
                for use in message.tool_uses
            )
            converted.append({"role": "assistant", "content": content})
        elif isinstance(message, ToolResultMessage):
            converted.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": result.tool_use_id,
                            "content": result.content,
                        }
                        for result in message.results
                    ],
                }
            )
    return "\n\n".join(s for s in system if s), converted


class ClaudeChatService(ChatService):
    provider = "claude"
    default_model = MODEL_CLAUDE_3_HAIKU
    default_vision_model = MODEL_CLAUDE_3_HAIKU
    vision_models = CLAUDE_VISION_MODELS
    default_endpoint = ENDPOINT_CLAUDE_MESSAGES
    default_max_tokens = 1000

    async def _build_request(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        stream: bool,
        max_tokens: int | None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        system, converted = to_claude_messages(messages)
        body: dict[str, Any] = {
            "model": model,
            "messages": converted,
            "stream": stream,
            "max_tokens": max_tokens if max_tokens is not None else self.default_max_tokens,
        }
        if system:
            body["system"] = system
        if self.tools:
            body["tools"] = [tool.to_claude_schema() for tool in self.tools]
            body["tool_choice"] = {"type": "auto"}
        headers = {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION}
        return self.endpoint, headers, body

    def _new_decoder(self) -> StreamDecoder:
        return ClaudeStreamDecoder()

    def _parse_one_shot(self, data: dict[str, Any]) -> Completion:
        return parse_claude_response(data)


class ClaudeChatServiceProvider(ChatServiceProvider):
    name = "claude"
    default_model = MODEL_CLAUDE_3_HAIKU
    models = CLAUDE_MODELS
    vision_models = CLAUDE_VISION_MODELS

    def create_chat_service(self, options: ChatServiceOptions) -> ClaudeChatService:
        return ClaudeChatService.from_options(options)  # type: ignore[return-value]

    def create_summarizer(self, options: ChatServiceOptions) -> ClaudeSummarizer:
        return ClaudeSummarizer(
            api_key=options.api_key,
            model=options.model or MODEL_CLAUDE_3_HAIKU,
            endpoint=options.endpoint or ENDPOINT_CLAUDE_MESSAGES,
            http_client=options.http_client,
        )
