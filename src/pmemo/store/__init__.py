"""
Blob stores.

- base.py: BlobStore / BlobWriter interfaces
- memory.py: in-process dict store
- filesystem.py: one file per key under a root directory
- sqlite.py: single aiosqlite database
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pmemo.exceptions import ConfigurationError
from pmemo.store.base import BlobStore, BlobWriter
from pmemo.store.filesystem import FileSystemBlobStore
from pmemo.store.memory import MemoryBlobStore
from pmemo.store.sqlite import SqliteBlobStore

if TYPE_CHECKING:
    from pmemo.config import Settings

__all__ = [
    "BlobStore",
    "BlobWriter",
    "FileSystemBlobStore",
    "MemoryBlobStore",
    "SqliteBlobStore",
    "create_store",
]


def create_store(settings: Settings) -> BlobStore:
    """Instantiate the configured blob store backend.

    Args:
        settings: Application settings (STORE_BACKEND, CACHE_DIR).

    Returns:
        Configured BlobStore implementation.
    """
    backend = settings.STORE_BACKEND

    if backend == "memory":
        return MemoryBlobStore()

    if backend == "filesystem":
        return FileSystemBlobStore(settings.CACHE_DIR)

    if backend == "sqlite":
        return SqliteBlobStore(settings.sqlite_path)

    raise ConfigurationError(
        f"Unsupported store backend: {backend!r}", context={"backend": backend}
    )
