"""
Summarizers: one per back end, used by the memory manager.

Every summarizer turns a transcript into a short summary with a single
non-streamed call. Failures never propagate: summarize_with_fallback()
logs them and returns "<n> messages. Latest topic: <first 50 chars>...".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

import httpx
from openai import AsyncOpenAI

from lumen.core.metrics import metrics
from lumen.llm.contracts import Message
from lumen.memory.models import DEFAULT_SUMMARY_PROMPT_TEMPLATE
from lumen.providers.models import (
    ANTHROPIC_VERSION,
    ENDPOINT_CLAUDE_MESSAGES,
    ENDPOINT_GEMINI,
    MODEL_CLAUDE_3_HAIKU,
    MODEL_GEMINI_2_0_FLASH_LITE,
    MODEL_GPT_4O_MINI,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryContext:
    system_prompt: str
    conversation_text: str


def build_summary_context(
    messages: Sequence[Message],
    max_length: int,
    default_template: str = DEFAULT_SUMMARY_PROMPT_TEMPLATE,
    custom_prompt: str | None = None,
) -> SummaryContext:
    template = custom_prompt or default_template
    return SummaryContext(
        system_prompt=template.replace("{maxLength}", str(max_length)),
        conversation_text="\n".join(f"{m.role}: {m.content}" for m in messages),
    )


def summary_fallback(messages: Sequence[Message]) -> str:
    latest = messages[-1].content[:50] if messages else ""
    return f"{len(messages)} messages. Latest topic: {latest or 'none'}..."


async def summarize_with_fallback(
    provider: str,
    messages: Sequence[Message],
    summarize: Callable[[], Awaitable[str]],
) -> str:
    try:
        return await summarize()
    except Exception as e:
        metrics.inc("summarizer.fallbacks", labels={"provider": provider})
        logger.error(
            "Summarization failed, using fallback: %s",
            e,
            extra={"provider": provider},
        )
        return summary_fallback(messages)


class OpenAISummarizer:
    """Summaries through the OpenAI SDK (chat.completions.create)."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = MODEL_GPT_4O_MINI,
        default_template: str = DEFAULT_SUMMARY_PROMPT_TEMPLATE,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.default_template = default_template
        client_kwargs = {}
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = client or AsyncOpenAI(api_key=api_key, **client_kwargs)

    async def summarize(
        self,
        messages: Sequence[Message],
        max_length: int = 256,
        custom_prompt: str | None = None,
    ) -> str:
        context = build_summary_context(messages, max_length, self.default_template, custom_prompt)

        async def call() -> str:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": context.system_prompt},
                    {"role": "user", "content": context.conversation_text},
                ],
                max_tokens=max_length,
            )
            return response.choices[0].message.content or ""

        return await summarize_with_fallback(self.provider, messages, call)


class _HTTPSummarizer:
    """Shared httpx plumbing for the REST-only back ends."""

    provider = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        default_template: str,
        http_client: httpx.AsyncClient | None,
        timeout: float,
    ):
        self.api_key = api_key
        self.model = model
        self.default_template = default_template
        self._client = http_client
        self._timeout = timeout

    async def _post(self, url: str, headers: dict[str, str], body: dict) -> dict:
        if self._client is not None:
            response = await self._client.post(url, headers=headers, json=body)
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                response = await client.post(url, headers=headers, json=body)
        response.raise_for_status()
        return response.json()


class ClaudeSummarizer(_HTTPSummarizer):
    provider = "claude"

    def __init__(
        self,
        api_key: str,
        model: str = MODEL_CLAUDE_3_HAIKU,
        default_template: str = DEFAULT_SUMMARY_PROMPT_TEMPLATE,
        endpoint: str = ENDPOINT_CLAUDE_MESSAGES,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(api_key, model, default_template, http_client, timeout)
        self.endpoint = endpoint

    async def summarize(
        self,
        messages: Sequence[Message],
        max_length: int = 256,
        custom_prompt: str | None = None,
    ) -> str:
        context = build_summary_context(messages, max_length, self.default_template, custom_prompt)

        async def call() -> str:
            data = await self._post(
                self.endpoint,
                {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
                {
                    "model": self.model,
                    "messages": [
                        {
                            "role": "user",
                            "content": f"{context.system_prompt}\n\n{context.conversation_text}",
                        }
                    ],
                    "max_tokens": max_length,
                },
            )
            content = data.get("content") or []
            return (content[0].get("text") if content else "") or ""

        return await summarize_with_fallback(self.provider, messages, call)


class GeminiSummarizer(_HTTPSummarizer):
    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = MODEL_GEMINI_2_0_FLASH_LITE,
        default_template: str = DEFAULT_SUMMARY_PROMPT_TEMPLATE,
        endpoint: str = ENDPOINT_GEMINI,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(api_key, model, default_template, http_client, timeout)
        self.endpoint = endpoint

    async def summarize(
        self,
        messages: Sequence[Message],
        max_length: int = 256,
        custom_prompt: str | None = None,
    ) -> str:
        context = build_summary_context(messages, max_length, self.default_template, custom_prompt)

        async def call() -> str:
            data = await self._post(
                f"{self.endpoint}/models/{self.model}:generateContent?key={self.api_key}",
                {},
                {
                    "contents": [
                        {
                            "role": "user",
                            "parts": [
                                {"text": context.system_prompt},
                                {"text": context.conversation_text},
                            ],
                        }
                    ],
                    "generationConfig": {
                        "temperature": 0.2,
                        "topK": 40,
                        "topP": 0.95,
                        "maxOutputTokens": max_length,
                    },
                },
            )
            candidates = data.get("candidates") or []
            parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
            return (parts[0].get("text") if parts else "") or ""

        return await summarize_with_fallback(self.provider, messages, call)
