"""Tests for line splitting and CompletionStream semantics."""

import pytest

from lumen.llm.contracts import Completion, StopReason, TextBlock
from lumen.llm.decoders import OpenAIStreamDecoder
from lumen.llm.stream import CompletionStream, StreamDecoder, collect, iter_lines


async def chunks_of(*parts: bytes):
    for part in parts:
        yield part


class TrackingSource:
    """Async byte source that records how far it was read and whether it closed."""

    def __init__(self, *parts: bytes):
        self.parts = parts
        self.pulled = 0
        self.closed = False

    async def gen(self):
        try:
            for part in self.parts:
                self.pulled += 1
                yield part
        finally:
            self.closed = True


def openai_line(text: str) -> bytes:
    return (
        'data: {"choices":[{"index":0,"delta":{"content":"' + text + '"}}]}\n\n'
    ).encode("utf-8")


class ExplodingDecoder(StreamDecoder):
    provider = "test"

    def feed_line(self, line: str) -> list[str]:
        if line == "boom":
            raise ValueError("bad frame")
        return [line] if line else []

    def finish(self) -> Completion:
        return Completion.from_blocks([TextBlock("never")])


class TestIterLines:
    @pytest.mark.asyncio
    async def test_lines_split_across_chunks(self):
        lines = [line async for line in iter_lines(chunks_of(b"hel", b"lo\nwor", b"ld\n"))]
        assert lines == ["hello", "world"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        encoded = "café ☕\n".encode("utf-8")
        # Split inside the 3-byte cup character
        parts = (encoded[:7], encoded[7:8], encoded[8:])
        lines = [line async for line in iter_lines(chunks_of(*parts))]
        assert lines == ["café ☕"]

    @pytest.mark.asyncio
    async def test_crlf_and_trailing_line(self):
        lines = [line async for line in iter_lines(chunks_of(b"a\r\nb\r\n\r\nc"))]
        assert lines == ["a", "b", "", "c"]


class TestCompletionStream:
    @pytest.mark.asyncio
    async def test_nothing_is_read_before_iteration(self):
        source = TrackingSource(openai_line("Hi"), b"data: [DONE]\n")
        stream = CompletionStream(source.gen(), OpenAIStreamDecoder())

        assert source.pulled == 0
        completion = await stream.completion()
        assert completion.text == "Hi"

    @pytest.mark.asyncio
    async def test_fragments_then_completion(self):
        source = TrackingSource(openai_line("Hel"), openai_line("lo"), b"data: [DONE]\n")
        stream = CompletionStream(source.gen(), OpenAIStreamDecoder())

        fragments = [fragment async for fragment in stream]
        completion = await stream.completion()

        assert fragments == ["Hel", "lo"]
        assert completion.blocks == (TextBlock("Hello"),)
        assert completion.stop_reason is StopReason.END

    @pytest.mark.asyncio
    async def test_frames_split_across_chunks(self):
        body = openai_line("Bonjour ") + openai_line("à tous") + b"data: [DONE]\n"
        # Cut every 7 bytes so every frame straddles chunk boundaries
        parts = [body[i : i + 7] for i in range(0, len(body), 7)]
        stream = CompletionStream(chunks_of(*parts), OpenAIStreamDecoder())

        fragments = [fragment async for fragment in stream]

        assert fragments == ["Bonjour ", "à tous"]
        assert (await stream.completion()).text == "Bonjour à tous"

    @pytest.mark.asyncio
    async def test_stops_at_terminator_and_closes_source(self):
        source = TrackingSource(
            openai_line("Hi"),
            b"data: [DONE]\n",
            openai_line("ignored"),
        )
        stream = CompletionStream(source.gen(), OpenAIStreamDecoder())

        completion = await stream.completion()

        assert completion.text == "Hi"
        assert source.pulled == 2
        assert source.closed is True

    @pytest.mark.asyncio
    async def test_completion_is_stable_after_exhaustion(self):
        stream = CompletionStream(chunks_of(openai_line("x")), OpenAIStreamDecoder())
        first = await stream.completion()
        second = await stream.completion()
        assert first is second
        assert [f async for f in stream] == []

    @pytest.mark.asyncio
    async def test_decoder_error_is_raised_and_kept(self):
        stream = CompletionStream(chunks_of(b"ok\nboom\n"), ExplodingDecoder())

        with pytest.raises(ValueError, match="bad frame"):
            async for _ in stream:
                pass
        with pytest.raises(ValueError, match="bad frame"):
            await stream.completion()

    @pytest.mark.asyncio
    async def test_closed_early_has_no_completion(self):
        source = TrackingSource(openai_line("a"), openai_line("b"))
        stream = CompletionStream(source.gen(), OpenAIStreamDecoder())

        assert await stream.__anext__() == "a"
        await stream.aclose()

        assert source.closed is True
        with pytest.raises(RuntimeError):
            await stream.completion()


@pytest.mark.asyncio
async def test_collect_forwards_partials():
    partials = []
    stream = CompletionStream(
        chunks_of(openai_line("one "), openai_line("two"), b"data: [DONE]\n"),
        OpenAIStreamDecoder(),
    )

    completion = await collect(stream, partials.append)

    assert partials == ["one ", "two"]
    assert completion.text == "one two"


@pytest.mark.asyncio
async def test_collect_closes_stream_when_callback_fails():
    source = TrackingSource(openai_line("one"), openai_line("two"), b"data: [DONE]\n")
    stream = CompletionStream(source.gen(), OpenAIStreamDecoder())

    def explode(_):
        raise RuntimeError("listener broke")

    with pytest.raises(RuntimeError, match="listener broke"):
        await collect(stream, explode)

    assert source.pulled == 1
    assert source.closed is True
