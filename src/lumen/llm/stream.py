"""
Completion streams: byte chunks in, text fragments and one Completion out.

- iter_lines(): incremental UTF-8 line splitter over an async byte iterator
- StreamDecoder: per back end line parser (see lumen.llm.decoders)
- CompletionStream: lazy, finite, non-restartable async iterator of text
  fragments whose terminal value is awaited with completion()

Usage:
    stream = service.stream_chat(messages)
    async for fragment in stream:
        print(fragment, end="")
    completion = await stream.completion()
"""

from __future__ import annotations

import codecs
import logging
from abc import ABC, abstractmethod
from typing import AsyncGenerator, AsyncIterator, Callable

from lumen.core.metrics import metrics
from lumen.llm.contracts import Completion

logger = logging.getLogger(__name__)

PartialCallback = Callable[[str], None]


async def iter_lines(chunks: AsyncIterator[bytes]) -> AsyncGenerator[str, None]:
    """Split a byte stream into text lines.

    Chunk boundaries may fall anywhere, including inside a multi-byte
    character. Both ``\\n`` and ``\\r\\n`` endings are accepted.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        while True:
            newline = buffer.find("\n")
            if newline < 0:
                break
            line = buffer[:newline]
            buffer = buffer[newline + 1 :]
            yield line.rstrip("\r")
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer.rstrip("\r")


class StreamDecoder(ABC):
    """Incremental parser for one response body.

    feed_line() returns the user-visible text produced by that line, in
    arrival order. finish() builds the Completion once the body ends.
    Setting ``done`` tells the reader to stop consuming.
    """

    provider: str = ""

    def __init__(self) -> None:
        self.done = False
        self.skipped = 0

    @abstractmethod
    def feed_line(self, line: str) -> list[str]: ...

    @abstractmethod
    def finish(self) -> Completion: ...

    def skip(self, reason: str, payload: str) -> None:
        """Drop one malformed frame and keep going."""
        self.skipped += 1
        metrics.inc("decoder.skipped_frames", labels={"provider": self.provider})
        logger.warning(
            "Skipping malformed %s frame (%s): %.200s",
            self.provider,
            reason,
            payload,
            extra={"provider": self.provider},
        )


class CompletionStream:
    """
    Text fragments from one model call, followed by a terminal Completion.

    Nothing is read until the first fragment is requested. The stream can be
    consumed once: after exhaustion, iterating again yields nothing and
    completion() returns the same value (or re-raises the same error).
    """

    def __init__(self, chunks: AsyncIterator[bytes], decoder: StreamDecoder):
        self._chunks = chunks
        self._decoder = decoder
        self._fragments = self._run()
        self._completion: Completion | None = None
        self._error: BaseException | None = None

    def __aiter__(self) -> CompletionStream:
        return self

    async def __anext__(self) -> str:
        return await self._fragments.__anext__()

    async def completion(self) -> Completion:
        """Drain whatever is left and return the terminal Completion."""
        async for _ in self:
            pass
        if self._error is not None:
            raise self._error
        if self._completion is None:
            raise RuntimeError("Stream was closed before it completed")
        return self._completion

    async def aclose(self) -> None:
        await self._fragments.aclose()

    async def _run(self) -> AsyncGenerator[str, None]:
        lines = iter_lines(self._chunks)
        try:
            async for line in lines:
                for fragment in self._decoder.feed_line(line):
                    yield fragment
                if self._decoder.done:
                    break
            self._completion = self._decoder.finish()
        except Exception as e:
            self._error = e
            raise
        finally:
            await lines.aclose()
            aclose = getattr(self._chunks, "aclose", None)
            if aclose is not None:
                await aclose()


async def collect(
    stream: CompletionStream, on_partial: PartialCallback | None = None
) -> Completion:
    """Forward every fragment to ``on_partial`` and return the Completion."""
    try:
        async for fragment in stream:
            if on_partial is not None:
                on_partial(fragment)
        return await stream.completion()
    finally:
        await stream.aclose()
