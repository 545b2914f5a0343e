"""
Filesystem blob store.

Each key is one file under the root directory; ``/``-separated key segments
become subdirectories. Writes go straight to the final path, so a concurrent
reader can observe a partially written blob.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, AsyncIterator

from pmemo.exceptions import StoreError
from pmemo.logging import get_logger
from pmemo.store.base import BlobStore, BlobWriter

logger = get_logger(__name__)


class _FileWriter(BlobWriter):
    def __init__(self, path: Path, handle: IO[bytes]) -> None:
        self._path = path
        self._handle = handle

    async def write(self, chunk: bytes) -> None:
        self._handle.write(chunk)

    async def close(self) -> None:
        if self._handle.closed:
            return
        self._handle.flush()
        self._handle.close()
        logger.debug("Wrote blob", path=str(self._path))

    async def abort(self) -> None:
        if not self._handle.closed:
            self._handle.close()


class FileSystemBlobStore(BlobStore):
    """Store blobs as files under ``root``."""

    def __init__(self, root: str | Path, chunk_size: int = 64 * 1024) -> None:
        self.root = Path(root)
        self.chunk_size = chunk_size

    def path_for(self, key: str) -> Path:
        """Map a key to a file path inside the root.

        Every ``/``-separated segment must be a plain name, so distinct keys
        always map to distinct files.

        Raises:
            StoreError: The key is empty, absolute, has an empty, ``.`` or
                ``..`` segment, or contains a backslash or NUL.
        """
        segments = key.split("/")
        if any(s in ("", ".", "..") or "\\" in s or "\0" in s for s in segments):
            raise StoreError("Invalid blob key", context={"key": key})
        return self.root.joinpath(*segments)

    async def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    async def open_read(self, key: str) -> AsyncIterator[bytes]:
        path = self.path_for(key)
        with path.open("rb") as f:
            while chunk := f.read(self.chunk_size):
                yield chunk

    async def open_write(self, key: str) -> BlobWriter:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        return _FileWriter(path, path.open("wb"))
