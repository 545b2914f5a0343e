"""
Async byte streams.

ByteStream is the single representation of "a live sequence of bytes" used by
the codec, the record engine and the stores. Tee duplicates one stream into
independently consumable branches.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

from pmemo.exceptions import SerializationError, StreamConsumedError


async def _iterate_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def _prepended(head: bytes, tail: ByteStream) -> AsyncIterator[bytes]:
    yield head
    async for chunk in tail:
        yield chunk


class ByteStream:
    """A single-use async sequence of byte chunks.

    Iterating a ByteStream a second time raises StreamConsumedError. Chunks are
    normalized to ``bytes``; empty chunks are skipped.
    """

    def __init__(
        self,
        source: AsyncIterable[bytes],
        *,
        parent: ByteStream | None = None,
    ) -> None:
        self._source = source
        self._parent = parent
        self._consumed = False

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int | None = None) -> ByteStream:
        """Create a stream over ``data``.

        Args:
            data: The bytes to emit.
            chunk_size: Split into chunks of this size. None emits a single chunk.
        """
        if not chunk_size or chunk_size >= len(data):
            return cls(_iterate_chunks([data]))
        return cls(
            _iterate_chunks(data[i : i + chunk_size] for i in range(0, len(data), chunk_size))
        )

    @classmethod
    def from_chunks(cls, chunks: Iterable[bytes]) -> ByteStream:
        """Create a stream that emits the given chunks as-is."""
        return cls(_iterate_chunks(list(chunks)))

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise StreamConsumedError("ByteStream can only be consumed once")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        async for chunk in self._source:
            if isinstance(chunk, (bytearray, memoryview)):
                chunk = bytes(chunk)
            elif not isinstance(chunk, bytes):
                raise SerializationError(
                    "Stream chunks must be bytes-like",
                    context={"chunk_type": type(chunk).__name__},
                )
            if chunk:
                yield chunk

    def prepend(self, data: bytes) -> ByteStream:
        """Return a new stream yielding ``data`` before this stream's chunks.

        This stream is handed over to the new one and must not be used directly
        afterwards.
        """
        if not data:
            return self
        return ByteStream(_prepended(data, self), parent=self)

    async def read(self) -> bytes:
        """Drain the stream and return the concatenated bytes."""
        return b"".join([chunk async for chunk in self])

    async def read_text(self, encoding: str = "utf-8") -> str:
        """Drain the stream and decode it."""
        return (await self.read()).decode(encoding)

    async def aclose(self) -> None:
        """Discard the stream without reading it, closing the underlying source."""
        self._consumed = True
        closer = getattr(self._source, "aclose", None)
        if closer is not None:
            await closer()
        if self._parent is not None:
            await self._parent.aclose()


class Tee:
    """Duplicate one byte source into ``n`` independently drained branches.

    Pull-based: a branch that has no buffered chunk pulls the next one from the
    source and appends it to every branch's queue. Buffering is unbounded, so a
    slow (or abandoned) branch never blocks the others; it only holds memory.
    An error raised by the source is re-raised in every branch after that
    branch has received all chunks produced before the error.
    """

    def __init__(self, source: AsyncIterable[bytes], n: int = 2) -> None:
        if n < 1:
            raise ValueError("Tee needs at least one branch")
        self._iterator = aiter(source)
        self._queues: list[deque[bytes]] = [deque() for _ in range(n)]
        self._lock = asyncio.Lock()
        self._done = False
        self._error: BaseException | None = None
        self.branches: tuple[ByteStream, ...] = tuple(
            ByteStream(self._branch(i)) for i in range(n)
        )

    def __iter__(self) -> Iterator[ByteStream]:
        return iter(self.branches)

    async def _branch(self, index: int) -> AsyncIterator[bytes]:
        queue = self._queues[index]
        while True:
            if queue:
                yield queue.popleft()
                continue
            if not await self._pull(queue):
                return

    async def _pull(self, queue: deque[bytes]) -> bool:
        """Fill ``queue`` with at least one chunk. Returns False at end of source."""
        async with self._lock:
            # Another branch may have pulled while we waited for the lock
            if queue:
                return True
            if self._done:
                if self._error is not None:
                    raise self._error
                return False
            try:
                chunk = await anext(self._iterator)
            except StopAsyncIteration:
                self._done = True
                return False
            except Exception as e:
                self._done = True
                self._error = e
                raise
            for q in self._queues:
                q.append(chunk)
            return True
