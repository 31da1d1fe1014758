"""
Gemini Chat Service: generateContent / streamGenerateContent over raw HTTP.

Gemini has no system role: system messages are sent as ``model`` turns, and
consecutive turns with the same role are merged into one ``parts`` list.
Images are always sent inline, so http(s) image URLs are fetched first.
Function calls carry no ids on this API; results are matched by name.
"""

from __future__ import annotations

import logging
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
from lumen.llm.decoders import GeminiStreamDecoder, parse_gemini_response
from lumen.llm.stream import StreamDecoder
from lumen.providers.base import (
    ChatService,
    ChatServiceOptions,
    ChatServiceProvider,
    parse_data_url,
)
from lumen.providers.models import (
    ENDPOINT_GEMINI,
    GEMINI_MODELS,
    GEMINI_VISION_MODELS,
    MODEL_GEMINI_2_0_FLASH_LITE,
)
from lumen.providers.summarizers import GeminiSummarizer

logger = logging.getLogger(__name__)

_ROLES = {"system": "model", "assistant": "model", "user": "user"}


class GeminiChatService(ChatService):
    provider = "gemini"
    default_model = MODEL_GEMINI_2_0_FLASH_LITE
    default_vision_model = MODEL_GEMINI_2_0_FLASH_LITE
    vision_models = GEMINI_VISION_MODELS
    default_endpoint = ENDPOINT_GEMINI
    default_max_tokens = 1000

    async def to_gemini_contents(
        self, messages: Sequence[ChatMessage]
    ) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []
        names_by_id: dict[str, str] = {}

        def append(role: str, parts: list[dict[str, Any]]) -> None:
            if not parts:
                return
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"].extend(parts)
            else:
                contents.append({"role": role, "parts": parts})

        for message in messages:
            if isinstance(message, Message):
                if message.content:
                    append(_ROLES[message.role], [{"text": message.content}])
            elif isinstance(message, VisionMessage):
                parts: list[dict[str, Any]] = []
                for part in message.parts:
                    if isinstance(part, TextPart):
                        if part.text:
                            parts.append({"text": part.text})
                    else:
                        parts.append(await self._inline_image(part))
                append(_ROLES[message.role], parts)
            elif isinstance(message, ToolCallMessage):
                parts = [{"text": message.text}] if message.text else []
                for use in message.tool_uses:
                    names_by_id[use.id] = use.name
                    parts.append({"functionCall": {"name": use.name, "args": use.input}})
                append("model", parts)
            elif isinstance(message, ToolResultMessage):
                append(
                    "user",
                    [
                        {
                            "functionResponse": {
                                "name": names_by_id.get(result.tool_use_id, result.tool_use_id),
                                "response": {"content": result.content},
                            }
                        }
                        for result in message.results
                    ],
                )
        return contents

    async def _inline_image(self, part: ImagePart) -> dict[str, Any]:
        inline = parse_data_url(part.url)
        if inline is None:
            logger.debug("Fetching image for inline upload: %s", part.url)
            inline = await self.fetch_image_base64(part.url)
        mime_type, data = inline
        return {"inlineData": {"mimeType": mime_type, "data": data}}

    async def _build_request(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        stream: bool,
        max_tokens: int | None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        if max_tokens is None:
            max_tokens = self.default_max_tokens
        body: dict[str, Any] = {
            "contents": await self.to_gemini_contents(messages),
            "generationConfig": {"maxOutputTokens": max_tokens},
        }
        if self.tools:
            body["tools"] = [
                {"functionDeclarations": [tool.to_gemini_declaration() for tool in self.tools]}
            ]
            body["toolConfig"] = {"functionCallingConfig": {"mode": "AUTO"}}

        if stream:
            url = f"{self.endpoint}/models/{model}:streamGenerateContent?alt=sse&key={self.api_key}"
        else:
            url = f"{self.endpoint}/models/{model}:generateContent?key={self.api_key}"
        return url, {}, body

    def _new_decoder(self) -> StreamDecoder:
        return GeminiStreamDecoder()

    def _parse_one_shot(self, data: dict[str, Any]) -> Completion:
        return parse_gemini_response(data)


class GeminiChatServiceProvider(ChatServiceProvider):
    name = "gemini"
    default_model = MODEL_GEMINI_2_0_FLASH_LITE
    models = GEMINI_MODELS
    vision_models = GEMINI_VISION_MODELS

    def create_chat_service(self, options: ChatServiceOptions) -> GeminiChatService:
        return GeminiChatService.from_options(options)  # type: ignore[return-value]

    def create_summarizer(self, options: ChatServiceOptions) -> GeminiSummarizer:
        return GeminiSummarizer(
            api_key=options.api_key,
            model=options.model or MODEL_GEMINI_2_0_FLASH_LITE,
            endpoint=options.endpoint or ENDPOINT_GEMINI,
            http_client=options.http_client,
        )
