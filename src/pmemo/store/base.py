"""
Blob store interfaces.

A blob store maps string keys to byte sequences. The cache record engine only
needs existence checks, a chunked read stream and a chunked write stream per
key; everything else (layout, durability, deletion) belongs to the store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator


class BlobWriter(ABC):
    """Write side of one blob. Nothing is guaranteed visible before close()."""

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Append a chunk."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Finish the blob. Raises if the store could not persist it."""
        ...

    @abstractmethod
    async def abort(self) -> None:
        """Release resources after a failed write. Does not clean up partial data."""
        ...


class BlobStore(ABC):
    """Abstract key -> byte sequence store."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a blob exists for key."""
        ...

    @abstractmethod
    def open_read(self, key: str) -> AsyncIterator[bytes]:
        """Return an async iterator over the blob's chunks."""
        ...

    @abstractmethod
    async def open_write(self, key: str) -> BlobWriter:
        """Open a writer that replaces the blob for key."""
        ...

    async def close(self) -> None:
        """Release store resources. No-op by default."""
        return None
