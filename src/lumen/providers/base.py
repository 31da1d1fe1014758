"""
Chat service base classes: the boundary every back end honors.

ChatService owns the shared flow (HTTP, streaming, the four-method
contract, the tool-use gate). Subclasses only say how to build a request
for their wire format and which decoder reads the answer.

ChatServiceProvider is the factory the registry hands out: it knows a back
end's models, vision capability and how to build its service and
summarizer.
"""

from __future__ import annotations

import base64
import inspect
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Awaitable, Callable, Sequence, Union

import httpx

from lumen.core.errors import (
    ProviderHTTPError,
    ToolUseNotAllowedError,
    VisionNotSupportedError,
)
from lumen.core.metrics import metrics
from lumen.llm.contracts import ChatMessage, Completion, StopReason
from lumen.llm.stream import CompletionStream, PartialCallback, StreamDecoder, collect
from lumen.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

CompleteCallback = Callable[[str], Union[None, Awaitable[None]]]

_DATA_URL = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL
)

_MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def parse_data_url(url: str) -> tuple[str, str] | None:
    """Split a base64 data URL into (mime type, payload). None for other URLs."""
    match = _DATA_URL.match(url)
    if not match:
        return None
    return match.group("mime") or "image/jpeg", match.group("data")


def mime_type_from_url(url: str) -> str:
    extension = url.split("?", 1)[0].rsplit(".", 1)[-1].lower()
    return _MIME_BY_EXTENSION.get(extension, "image/jpeg")


@dataclass
class ChatServiceOptions:
    api_key: str
    model: str | None = None
    vision_model: str | None = None
    tools: list[ToolDefinition] = field(default_factory=list)
    endpoint: str | None = None
    http_client: httpx.AsyncClient | None = None
    timeout: float = 60.0


class ChatService(ABC):
    """One back end's chat API behind the shared contract."""

    provider: str = ""
    default_model: str = ""
    default_vision_model: str = ""
    vision_models: tuple[str, ...] = ()
    default_endpoint: str = ""
    default_max_tokens: int | None = None

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        vision_model: str | None = None,
        tools: Sequence[ToolDefinition] | None = None,
        endpoint: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.vision_model = vision_model or self.default_vision_model
        if self.vision_model not in self.vision_models:
            raise VisionNotSupportedError(self.provider, self.vision_model)
        self.tools: list[ToolDefinition] = list(tools or [])
        self.endpoint = endpoint or self.default_endpoint
        self.timeout = timeout
        self.client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_options(cls, options: ChatServiceOptions) -> ChatService:
        return cls(
            api_key=options.api_key,
            model=options.model,
            vision_model=options.vision_model,
            tools=options.tools,
            endpoint=options.endpoint,
            http_client=options.http_client,
            timeout=options.timeout,
        )

    # --- Lifecycle ---

    async def start(self) -> None:
        if self.client:
            return  # Already started
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        logger.info(
            "%s chat ready (model=%s, vision_model=%s)",
            self.provider,
            self.model,
            self.vision_model,
            extra={"provider": self.provider},
        )

    async def stop(self) -> None:
        """Close the HTTP client if this service created it."""
        if self.client and self._owns_client:
            await self.client.aclose()
        if self._owns_client:
            self.client = None

    async def _http(self) -> httpx.AsyncClient:
        if self.client is None:
            await self.start()
        if self.client is None:
            raise RuntimeError(f"{self.provider} chat service has no HTTP client")
        return self.client

    # --- Back end specifics ---

    @abstractmethod
    async def _build_request(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        stream: bool,
        max_tokens: int | None,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, json body) for one call."""
        ...

    @abstractmethod
    def _new_decoder(self) -> StreamDecoder:
        ...

    @abstractmethod
    def _parse_one_shot(self, data: dict[str, Any]) -> Completion:
        ...

    # --- Transport ---

    def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        vision: bool = False,
        max_tokens: int | None = None,
    ) -> CompletionStream:
        """Lazy stream for one call. The request is sent on first read."""
        model = self.vision_model if vision else self.model
        chunks = self._post_stream(list(messages), model, max_tokens)
        return CompletionStream(chunks, self._new_decoder())

    async def _post_stream(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int | None,
    ) -> AsyncGenerator[bytes, None]:
        url, headers, body = await self._build_request(messages, model, True, max_tokens)
        client = await self._http()
        started = time.monotonic()
        metrics.inc("provider.requests", labels={"provider": self.provider})

        try:
            async with client.stream("POST", url, headers=headers, json=body) as response:
                if response.status_code >= 400:
                    raw = await response.aread()
                    raise self._http_error(
                        response.status_code, raw.decode("utf-8", errors="replace")
                    )
                async for chunk in response.aiter_bytes():
                    yield chunk
        finally:
            # Also runs when the reader stops early at a terminator
            elapsed_ms = (time.monotonic() - started) * 1000
            metrics.observe("provider.latency_ms", elapsed_ms, labels={"provider": self.provider})
            logger.debug(
                "%s stream closed after %.0fms",
                self.provider,
                elapsed_ms,
                extra={"provider": self.provider, "duration_ms": round(elapsed_ms)},
            )

    async def _post_json(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        url, headers, body = await self._build_request(messages, model, False, max_tokens)
        client = await self._http()
        started = time.monotonic()
        metrics.inc("provider.requests", labels={"provider": self.provider})

        response = await client.post(url, headers=headers, json=body)
        if response.status_code >= 400:
            raise self._http_error(response.status_code, response.text)

        elapsed_ms = (time.monotonic() - started) * 1000
        metrics.observe("provider.latency_ms", elapsed_ms, labels={"provider": self.provider})
        return response.json()

    def _http_error(self, status_code: int, body: str) -> ProviderHTTPError:
        metrics.inc("provider.errors", labels={"provider": self.provider})
        logger.error(
            "%s request failed (%d): %.500s",
            self.provider,
            status_code,
            body,
            extra={"provider": self.provider, "status": status_code},
        )
        return ProviderHTTPError(self.provider, status_code, body)

    # --- The four-method contract ---

    async def chat_once(
        self,
        messages: Sequence[ChatMessage],
        stream: bool = True,
        on_partial: PartialCallback | None = None,
        max_tokens: int | None = None,
    ) -> Completion:
        """One tool-aware call. Tool-use blocks are returned, never resolved."""
        return await self._once(messages, False, stream, on_partial, max_tokens)

    async def vision_chat_once(
        self,
        messages: Sequence[ChatMessage],
        stream: bool = False,
        on_partial: PartialCallback | None = None,
        max_tokens: int | None = None,
    ) -> Completion:
        """Like chat_once, against the vision model."""
        return await self._once(messages, True, stream, on_partial, max_tokens)

    async def process_chat(
        self,
        messages: Sequence[ChatMessage],
        on_partial: PartialCallback | None,
        on_complete: CompleteCallback,
    ) -> None:
        """Stream a reply and hand the full text to ``on_complete``."""
        await self._process(messages, False, on_partial, on_complete)

    async def process_vision_chat(
        self,
        messages: Sequence[ChatMessage],
        on_partial: PartialCallback | None,
        on_complete: CompleteCallback,
    ) -> None:
        await self._process(messages, True, on_partial, on_complete)

    async def _once(
        self,
        messages: Sequence[ChatMessage],
        vision: bool,
        stream: bool,
        on_partial: PartialCallback | None,
        max_tokens: int | None,
    ) -> Completion:
        if stream:
            return await collect(self.stream_chat(messages, vision, max_tokens), on_partial)
        model = self.vision_model if vision else self.model
        data = await self._post_json(list(messages), model, max_tokens)
        return self._parse_one_shot(data)

    async def _process(
        self,
        messages: Sequence[ChatMessage],
        vision: bool,
        on_partial: PartialCallback | None,
        on_complete: CompleteCallback,
    ) -> None:
        if not self.tools:
            completion = await collect(self.stream_chat(messages, vision), on_partial)
        else:
            completion = await self._once(messages, vision, True, on_partial, None)
            if completion.stop_reason is StopReason.TOOL_USE:
                if vision:
                    raise ToolUseNotAllowedError("process_vision_chat", "vision_chat_once")
                raise ToolUseNotAllowedError("process_chat", "chat_once")

        result = on_complete(completion.text)
        if inspect.isawaitable(result):
            await result

    async def fetch_image_base64(self, url: str) -> tuple[str, str]:
        """Download an image and return (mime type, base64 payload)."""
        client = await self._http()
        response = await client.get(url)
        if response.status_code >= 400:
            raise self._http_error(response.status_code, response.text)
        mime = response.headers.get("content-type", "").split(";", 1)[0].strip()
        return mime or mime_type_from_url(url), base64.b64encode(response.content).decode("ascii")


class ChatServiceProvider(ABC):
    """Factory for one back end's services and summarizer."""

    name: str = ""
    default_model: str = ""
    models: tuple[str, ...] = ()
    vision_models: tuple[str, ...] = ()

    def supported_models(self) -> list[str]:
        return list(self.models)

    def supports_vision(self) -> bool:
        return bool(self.vision_models)

    def supports_vision_for_model(self, model: str) -> bool:
        return model in self.vision_models

    @abstractmethod
    def create_chat_service(self, options: ChatServiceOptions) -> ChatService:
        ...

    @abstractmethod
    def create_summarizer(self, options: ChatServiceOptions) -> Any:
        """Return a Summarizer matching this back end."""
        ...
