"""Tests for the per back end summarizers and their fallback."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from lumen.core.metrics import metrics
from lumen.llm.contracts import Message
from lumen.memory.models import Summarizer
from lumen.providers.summarizers import (
    ClaudeSummarizer,
    GeminiSummarizer,
    OpenAISummarizer,
    build_summary_context,
    summary_fallback,
)

TRANSCRIPT = [
    Message(role="user", content="What's the weather in Paris?"),
    Message(role="assistant", content="Sunny and 22 degrees."),
]


def openai_response(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class TestSummaryContext:
    def test_default_template_gets_length(self):
        context = build_summary_context(TRANSCRIPT, 120)
        assert "around 120 characters" in context.system_prompt
        assert "{maxLength}" not in context.system_prompt
        assert context.conversation_text == (
            "user: What's the weather in Paris?\nassistant: Sunny and 22 degrees."
        )

    def test_custom_prompt_wins(self):
        context = build_summary_context(TRANSCRIPT, 50, custom_prompt="At most {maxLength} chars.")
        assert context.system_prompt == "At most 50 chars."

    def test_fallback_text(self):
        assert summary_fallback(TRANSCRIPT) == "2 messages. Latest topic: Sunny and 22 degrees...."
        assert summary_fallback([]) == "0 messages. Latest topic: none..."


class TestOpenAISummarizer:
    @pytest.mark.asyncio
    async def test_summarize(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=openai_response("Paris weather."))
        summarizer = OpenAISummarizer(api_key="k", client=client)

        summary = await summarizer.summarize(TRANSCRIPT, max_length=64)

        assert summary == "Paris weather."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 64
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1] == {
            "role": "user",
            "content": "user: What's the weather in Paris?\nassistant: Sunny and 22 degrees.",
        }

    @pytest.mark.asyncio
    async def test_failure_falls_back(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("network down"))
        summarizer = OpenAISummarizer(api_key="k", client=client)

        summary = await summarizer.summarize(TRANSCRIPT)

        assert summary == summary_fallback(TRANSCRIPT)
        assert metrics.counter("summarizer.fallbacks", {"provider": "openai"}) == 1

    def test_satisfies_protocol(self):
        assert isinstance(OpenAISummarizer(api_key="k", client=MagicMock()), Summarizer)


class TestClaudeSummarizer:
    @pytest.mark.asyncio
    async def test_summarize(self, mock_http):
        transport = mock_http(
            lambda request: httpx.Response(200, json={"content": [{"type": "text", "text": "Sum."}]})
        )
        summarizer = ClaudeSummarizer(api_key="sk-ant", http_client=transport.client())

        assert await summarizer.summarize(TRANSCRIPT, 100) == "Sum."

        request = transport.requests[0]
        assert request.headers["x-api-key"] == "sk-ant"
        body = transport.body()
        assert body["max_tokens"] == 100
        assert body["messages"][0]["role"] == "user"
        assert body["messages"][0]["content"].endswith("assistant: Sunny and 22 degrees.")

    @pytest.mark.asyncio
    async def test_http_error_falls_back(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(529, json={"error": "overloaded"}))
        summarizer = ClaudeSummarizer(api_key="k", http_client=transport.client())

        assert await summarizer.summarize(TRANSCRIPT) == summary_fallback(TRANSCRIPT)


class TestGeminiSummarizer:
    @pytest.mark.asyncio
    async def test_summarize(self, mock_http):
        payload = {"candidates": [{"content": {"parts": [{"text": "Gemini sum."}]}}]}
        transport = mock_http(lambda request: httpx.Response(200, json=payload))
        summarizer = GeminiSummarizer(api_key="gm", http_client=transport.client())

        assert await summarizer.summarize(TRANSCRIPT, 80) == "Gemini sum."

        url = str(transport.requests[0].url)
        assert url.endswith("/models/gemini-2.0-flash-lite:generateContent?key=gm")
        config = transport.body()["generationConfig"]
        assert config == {"temperature": 0.2, "topK": 40, "topP": 0.95, "maxOutputTokens": 80}

    @pytest.mark.asyncio
    async def test_empty_candidates(self, mock_http):
        transport = mock_http(lambda request: httpx.Response(200, json={"candidates": []}))
        summarizer = GeminiSummarizer(api_key="gm", http_client=transport.client())

        assert await summarizer.summarize(TRANSCRIPT) == ""
