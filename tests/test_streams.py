"""
Tests for ByteStream and Tee.
"""

from __future__ import annotations

from typing import AsyncIterator

import pytest

from pmemo.exceptions import SerializationError, StreamConsumedError
from pmemo.streams import ByteStream, Tee


async def chunks_of(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class TestByteStream:
    """Test single-use byte streams."""

    @pytest.mark.asyncio
    async def test_from_bytes_single_chunk(self) -> None:
        """Test that from_bytes without a chunk size emits one chunk."""
        stream = ByteStream.from_bytes(b"hello world")
        assert [chunk async for chunk in stream] == [b"hello world"]

    @pytest.mark.asyncio
    async def test_from_bytes_chunked(self) -> None:
        """Test that from_bytes splits into fixed-size chunks."""
        stream = ByteStream.from_bytes(b"abcdefg", chunk_size=3)
        assert [chunk async for chunk in stream] == [b"abc", b"def", b"g"]

    @pytest.mark.asyncio
    async def test_read_concatenates(self) -> None:
        """Test that read() joins all chunks."""
        stream = ByteStream(chunks_of(b"po", b"em", b" text"))
        assert await stream.read() == b"poem text"

    @pytest.mark.asyncio
    async def test_read_text(self) -> None:
        """Test that read_text() decodes UTF-8."""
        stream = ByteStream.from_bytes("café".encode("utf-8"), chunk_size=1)
        assert await stream.read_text() == "café"

    @pytest.mark.asyncio
    async def test_second_iteration_raises(self) -> None:
        """Test that a stream can only be consumed once."""
        stream = ByteStream.from_bytes(b"once")
        await stream.read()

        assert stream.consumed
        with pytest.raises(StreamConsumedError):
            await stream.read()

    @pytest.mark.asyncio
    async def test_empty_chunks_skipped_and_bytes_like_normalized(self) -> None:
        """Test chunk normalization."""
        stream = ByteStream(chunks_of(b"", bytearray(b"ab"), memoryview(b"cd"), b""))
        chunks = [chunk async for chunk in stream]

        assert chunks == [b"ab", b"cd"]
        assert all(type(chunk) is bytes for chunk in chunks)

    @pytest.mark.asyncio
    async def test_non_bytes_chunk_raises(self) -> None:
        """Test that text chunks are rejected."""
        stream = ByteStream(chunks_of(b"ok", "not bytes"))  # type: ignore[arg-type]

        with pytest.raises(SerializationError):
            await stream.read()

    @pytest.mark.asyncio
    async def test_prepend(self) -> None:
        """Test that prepended bytes come first and nothing is lost."""
        stream = ByteStream(chunks_of(b"c", b"d")).prepend(b"ab")
        assert [chunk async for chunk in stream] == [b"ab", b"c", b"d"]

    @pytest.mark.asyncio
    async def test_prepend_empty_returns_same_stream(self) -> None:
        """Test that prepending nothing is a no-op."""
        stream = ByteStream.from_bytes(b"x")
        assert stream.prepend(b"") is stream

    @pytest.mark.asyncio
    async def test_aclose_closes_source(self) -> None:
        """Test that aclose() finalizes a partially read source."""
        closed = False

        async def source() -> AsyncIterator[bytes]:
            nonlocal closed
            try:
                yield b"x"
                yield b"y"
            finally:
                closed = True

        raw = source()
        stream = ByteStream(raw)
        iterator = aiter(stream)
        assert await anext(iterator) == b"x"

        await stream.aclose()

        assert closed
        assert stream.consumed


class TestTee:
    """Test stream duplication."""

    @pytest.mark.asyncio
    async def test_both_branches_receive_everything(self) -> None:
        """Test that each branch sees every chunk."""
        left, right = Tee(chunks_of(b"a", b"b", b"c"))

        assert await left.read() == b"abc"
        assert await right.read() == b"abc"

    @pytest.mark.asyncio
    async def test_branches_drain_independently(self) -> None:
        """Test interleaved consumption in any order."""
        left, right = Tee(chunks_of(b"1", b"2", b"3"))
        left_it = aiter(left)
        right_it = aiter(right)

        assert await anext(right_it) == b"1"
        assert await anext(right_it) == b"2"
        assert await anext(left_it) == b"1"
        assert await anext(right_it) == b"3"
        assert [chunk async for chunk in left_it] == [b"2", b"3"]
        with pytest.raises(StopAsyncIteration):
            await anext(right_it)

    @pytest.mark.asyncio
    async def test_abandoned_branch_does_not_block(self) -> None:
        """Test that one branch drains fully while the other is never read."""
        data = [bytes([i]) * 100 for i in range(50)]
        left, _right = Tee(chunks_of(*data))

        assert await left.read() == b"".join(data)

    @pytest.mark.asyncio
    async def test_source_error_reaches_every_branch(self) -> None:
        """Test that a source failure is raised in both branches."""

        async def failing() -> AsyncIterator[bytes]:
            yield b"a"
            raise RuntimeError("boom")

        left, right = Tee(failing())

        with pytest.raises(RuntimeError, match="boom"):
            await left.read()

        received: list[bytes] = []
        with pytest.raises(RuntimeError, match="boom"):
            async for chunk in right:
                received.append(chunk)
        assert received == [b"a"]

    @pytest.mark.asyncio
    async def test_more_than_two_branches(self) -> None:
        """Test an n-way tee."""
        tee = Tee(chunks_of(b"x", b"y"), n=3)

        assert len(tee.branches) == 3
        for branch in tee:
            assert await branch.read() == b"xy"

    def test_zero_branches_rejected(self) -> None:
        """Test that a tee needs at least one branch."""
        with pytest.raises(ValueError):
            Tee(chunks_of(b"x"), n=0)
