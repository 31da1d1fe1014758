"""
OpenAI Chat Service: chat/completions over raw HTTP with SSE streaming.

Roles pass through unchanged. Vision content becomes ``image_url`` parts,
tool requests become ``assistant.tool_calls`` and results ``role: tool``
messages. Works against any OpenAI-compatible endpoint.
"""

from __future__ import annotations

import json
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
from lumen.llm.decoders import OpenAIStreamDecoder, parse_openai_response
from lumen.llm.stream import StreamDecoder
from lumen.providers.base import ChatService, ChatServiceOptions, ChatServiceProvider
from lumen.providers.models import (
    ENDPOINT_OPENAI_CHAT_COMPLETIONS,
    MODEL_GPT_4O_MINI,
    OPENAI_MODELS,
    OPENAI_VISION_MODELS,
)
from lumen.providers.summarizers import OpenAISummarizer


def to_openai_messages(messages: Sequence[ChatMessage]) -> list[dict[str, Any]]:
    converted: list[dict[str, Any]] = []
    for message in messages:
        if isinstance(message, Message):
            converted.append({"role": message.role, "content": message.content})
        elif isinstance(message, VisionMessage):
            if isinstance(message.content, str):
                converted.append({"role": message.role, "content": message.content})
                continue
            parts: list[dict[str, Any]] = []
            for part in message.content:
                if isinstance(part, TextPart):
                    parts.append({"type": "text", "text": part.text})
                elif isinstance(part, ImagePart):
                    parts.append(
                        {"type": "image_url", "image_url": {"url": part.url, "detail": part.detail}}
                    )
            converted.append({"role": message.role, "content": parts})
        elif isinstance(message, ToolCallMessage):
            converted.append(
                {
                    "role": "assistant",
                    "content": message.text or None,
                    "tool_calls": [
                        {
                            "id": use.id,
                            "type": "function",
                            "function": {"name": use.name, "arguments": json.dumps(use.input)},
                        }
                        for use in message.tool_uses
                    ],
                }
            )
        elif isinstance(message, ToolResultMessage):
            for result in message.results:
                converted.append(
                    {"role": "tool", "tool_call_id": result.tool_use_id, "content": result.content}
                )
    return converted


class OpenAIChatService(ChatService):
    provider = "openai"
    default_model = MODEL_GPT_4O_MINI
    default_vision_model = MODEL_GPT_4O_MINI
    vision_models = OPENAI_VISION_MODELS
    default_endpoint = ENDPOINT_OPENAI_CHAT_COMPLETIONS

    async def _build_request(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        stream: bool,
        max_tokens: int | None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        body: dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(messages),
            "stream": stream,
        }
        limit = max_tokens if max_tokens is not None else self.default_max_tokens
        if limit is not None:
            body["max_completion_tokens"] = limit
        if self.tools:
            body["tools"] = [tool.to_openai_schema() for tool in self.tools]
            body["tool_choice"] = "auto"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        return self.endpoint, headers, body

    def _new_decoder(self) -> StreamDecoder:
        return OpenAIStreamDecoder()

    def _parse_one_shot(self, data: dict[str, Any]) -> Completion:
        return parse_openai_response(data)


class OpenAIChatServiceProvider(ChatServiceProvider):
    name = "openai"
    default_model = MODEL_GPT_4O_MINI
    models = OPENAI_MODELS
    vision_models = OPENAI_VISION_MODELS

    def create_chat_service(self, options: ChatServiceOptions) -> OpenAIChatService:
        return OpenAIChatService.from_options(options)  # type: ignore[return-value]

    def create_summarizer(self, options: ChatServiceOptions) -> OpenAISummarizer:
        base_url = None
        if options.endpoint and options.endpoint.endswith("/chat/completions"):
            base_url = options.endpoint[: -len("/chat/completions")]
        return OpenAISummarizer(
            api_key=options.api_key,
            model=options.model or MODEL_GPT_4O_MINI,
            base_url=base_url,
        )
