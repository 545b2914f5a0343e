"""
SQLite blob store using aiosqlite.

Blobs live in a single table. A writer buffers its chunks and upserts the row
on close(), so readers only ever see complete blobs.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from pmemo.exceptions import StoreError
from pmemo.logging import get_logger
from pmemo.store.base import BlobStore, BlobWriter
from pmemo.types import utc_now

logger = get_logger(__name__)


class _SqliteWriter(BlobWriter):
    def __init__(self, store: SqliteBlobStore, key: str) -> None:
        self._store = store
        self._key = key
        self._chunks: list[bytes] = []
        self._closed = False

    async def write(self, chunk: bytes) -> None:
        self._chunks.append(bytes(chunk))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._store._put(self._key, b"".join(self._chunks))

    async def abort(self) -> None:
        self._closed = True
        self._chunks.clear()


class SqliteBlobStore(BlobStore):
    """Blob store backed by one SQLite database file."""

    def __init__(self, db_path: str | Path, chunk_size: int = 64 * 1024) -> None:
        self.db_path = Path(db_path)
        self.chunk_size = chunk_size
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> aiosqlite.Connection:
        """Open the database and create the schema. Safe to call multiple times."""
        if self._db is not None:
            return self._db
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.db_path)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS blobs (
                key TEXT PRIMARY KEY,
                data BLOB NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await db.commit()
        self._db = db
        logger.debug("Sqlite blob store initialized", db_path=str(self.db_path))
        return db

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def _conn(self) -> aiosqlite.Connection:
        return await self.init()

    async def exists(self, key: str) -> bool:
        db = await self._conn()
        async with db.execute("SELECT 1 FROM blobs WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row is not None

    async def open_read(self, key: str) -> AsyncIterator[bytes]:
        db = await self._conn()
        async with db.execute("SELECT data FROM blobs WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise StoreError("Blob not found", context={"key": key})
        data = bytes(row[0])
        for i in range(0, len(data), self.chunk_size):
            yield data[i : i + self.chunk_size]

    async def open_write(self, key: str) -> BlobWriter:
        await self._conn()
        return _SqliteWriter(self, key)

    async def _put(self, key: str, data: bytes) -> None:
        db = await self._conn()
        await db.execute(
            """
            INSERT INTO blobs (key, data, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
            """,
            (key, data, utc_now().isoformat()),
        )
        await db.commit()
