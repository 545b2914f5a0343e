"""In-process blob store, mainly for tests and short-lived processes."""

from __future__ import annotations

from typing import AsyncIterator

from pmemo.exceptions import StoreError
from pmemo.store.base import BlobStore, BlobWriter


class _MemoryWriter(BlobWriter):
    def __init__(self, store: MemoryBlobStore, key: str) -> None:
        self._store = store
        self._key = key
        self._chunks: list[bytes] = []
        self._closed = False

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise StoreError("Write after close", context={"key": self._key})
        self._chunks.append(bytes(chunk))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._blobs[self._key] = b"".join(self._chunks)

    async def abort(self) -> None:
        self._closed = True
        self._chunks.clear()


class MemoryBlobStore(BlobStore):
    """Dict-backed store. Blobs become visible when their writer closes.

    Args:
        chunk_size: Size of chunks yielded by open_read(). Small values are
            useful to exercise readers against arbitrary chunk boundaries.
    """

    def __init__(self, chunk_size: int = 64 * 1024) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self._blobs: dict[str, bytes] = {}

    async def exists(self, key: str) -> bool:
        return key in self._blobs

    async def open_read(self, key: str) -> AsyncIterator[bytes]:
        try:
            data = self._blobs[key]
        except KeyError:
            raise StoreError("Blob not found", context={"key": key}) from None
        for i in range(0, len(data), self.chunk_size):
            yield data[i : i + self.chunk_size]

    async def open_write(self, key: str) -> BlobWriter:
        return _MemoryWriter(self, key)

    def get_bytes(self, key: str) -> bytes:
        """Return the raw envelope stored for key."""
        return self._blobs[key]

    def put_bytes(self, key: str, data: bytes) -> None:
        """Store a raw envelope directly, bypassing the record engine."""
        self._blobs[key] = data

    def keys(self) -> list[str]:
        return sorted(self._blobs)
