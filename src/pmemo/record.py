"""
Cache record engine.

Every cache entry is stored as one envelope:

    <compact JSON header>\\n\\n<payload bytes>

The header always carries ``createdAt`` (ISO-8601, UTC) and ``type``
(json | buffer | stream) plus any caller metadata. Compact JSON never contains
a raw newline, so the first ``\\n\\n`` in the envelope is the boundary.

Reading scans the store stream incrementally for that boundary, then hands the
rest of the stream, including any payload bytes read ahead while scanning, to
the payload codec.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, TypeVar

import orjson

from pmemo.codec import decode, dumps_json, encode
from pmemo.exceptions import CorruptHeaderError, PMError, StoreError
from pmemo.logging import get_logger, log_context
from pmemo.store.base import BlobStore, BlobWriter
from pmemo.streams import ByteStream
from pmemo.types import CacheHit, CacheLookupResult, CacheMiss, PayloadType, utc_now

logger = get_logger(__name__)

DELIMITER = b"\n\n"
RESERVED_FIELDS = ("createdAt", "type")

MaxAge = float | timedelta | None

T = TypeVar("T")


class ScanState(str, Enum):
    SCANNING = "scanning"
    FOUND = "found"


class HeaderScanner:
    """Incremental search for the header delimiter over arbitrary chunks.

    Feed chunks until feed() returns True; ``header`` then holds the bytes
    before the delimiter and ``leftover`` the payload bytes read past it.
    A delimiter split across two chunks is still found.
    """

    def __init__(self) -> None:
        self.state = ScanState.SCANNING
        self.header = b""
        self.leftover = b""
        self._buffer = bytearray()
        self._search_from = 0

    @property
    def scanned(self) -> int:
        """Number of bytes accumulated so far."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> bool:
        if self.state is ScanState.FOUND:
            raise RuntimeError("Header already found")

        self._buffer += chunk
        index = self._buffer.find(DELIMITER, self._search_from)
        if index < 0:
            # Keep a possible partial delimiter at the tail in the next search window
            self._search_from = max(0, len(self._buffer) - len(DELIMITER) + 1)
            return False

        self.header = bytes(self._buffer[:index])
        self.leftover = bytes(self._buffer[index + len(DELIMITER) :])
        self._buffer = bytearray()
        self.state = ScanState.FOUND
        return True


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 header timestamp into an aware UTC datetime.

    Raises:
        ValueError: The value is not an ISO-8601 string.
    """
    if not isinstance(value, str):
        raise ValueError(f"expected an ISO-8601 string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_expired(created_at: Any, max_age: MaxAge, now: datetime) -> bool:
    """Return True if more than ``max_age`` seconds have passed since ``created_at``.

    A createdAt that is missing or not a datetime never expires, and neither
    does an unbounded max age (None or infinity). Ages are compared in seconds
    so arbitrarily large max ages cannot overflow datetime arithmetic.
    """
    if not isinstance(created_at, datetime) or max_age is None:
        return False
    if isinstance(max_age, timedelta):
        max_age = max_age.total_seconds()
    if math.isinf(max_age):
        return False
    return (now - created_at).total_seconds() > max_age


def parse_header(header: bytes, key: str | None = None) -> dict[str, Any]:
    """Parse envelope header bytes into metadata.

    ``createdAt``, when it parses as an ISO-8601 timestamp, is converted to a
    datetime. Any other value is kept as-is and the entry never expires.

    Raises:
        CorruptHeaderError: The header is not a JSON object.
    """
    try:
        metadata = orjson.loads(header)
    except orjson.JSONDecodeError as e:
        raise CorruptHeaderError(
            "Envelope header is not valid JSON", context={"key": key, "reason": str(e)}
        ) from e
    if not isinstance(metadata, dict):
        raise CorruptHeaderError(
            "Envelope header is not a JSON object",
            context={"key": key, "header_type": type(metadata).__name__},
        )

    created_at = metadata.get("createdAt")
    if created_at is not None:
        try:
            metadata["createdAt"] = parse_timestamp(created_at)
        except ValueError:
            logger.warning("Unparseable createdAt, entry treated as fresh", createdAt=created_at)
    return metadata


def build_header(
    payload_type: PayloadType,
    created_at: datetime,
    metadata: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the header object. createdAt and type always come from the engine."""
    header: dict[str, Any] = {
        "createdAt": created_at.isoformat(),
        "type": payload_type.value,
    }
    for field, value in (metadata or {}).items():
        if field in RESERVED_FIELDS:
            continue
        header[field] = value
    return header


class CacheRecordEngine:
    """Reads and writes cache envelopes on a blob store.

    Args:
        store: The blob store holding envelopes.
        clock: Returns the current aware datetime. Injected for tests.
    """

    def __init__(
        self,
        store: BlobStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self._clock = clock

    async def get(self, key: str, max_age: MaxAge = None) -> CacheLookupResult:
        """Look up ``key``.

        Args:
            key: Cache key.
            max_age: Maximum age in seconds (or a timedelta). None is unbounded.

        Returns:
            CacheMiss if the key is absent, else CacheHit. For stream payloads
            the hit's value is a live ByteStream over the store.

        Raises:
            StoreError: The store failed.
            CorruptHeaderError: The header is missing or unparseable.
            UnknownTypeError: The header declares an unknown type.
            DecodeError: A json payload does not decode.
        """
        with log_context(cache_key=key):
            if not await self._store_call(key, "exists", self.store.exists(key)):
                logger.debug("Cache miss")
                return CacheMiss()

            chunks = self._read(key)
            try:
                scanner = HeaderScanner()
                async for chunk in chunks:
                    if scanner.feed(chunk):
                        break
                else:
                    raise CorruptHeaderError(
                        "Entry ended before the header delimiter",
                        context={"key": key, "bytes_read": scanner.scanned},
                    )

                metadata = parse_header(scanner.header, key)
                expired = is_expired(metadata.get("createdAt"), max_age, self._clock())
                payload = ByteStream(chunks).prepend(scanner.leftover)
                value = await decode(metadata.get("type"), payload)
            except Exception:
                await chunks.aclose()
                raise

            logger.debug("Cache hit", type=metadata.get("type"), expired=expired)
            return CacheHit(expired=expired, metadata=metadata, value=value)

    async def set(
        self,
        key: str,
        value: Any,
        metadata: Mapping[str, Any] | None = None,
    ) -> Any:
        """Write ``value`` under ``key``, replacing any existing entry.

        The header is fully written before the first payload byte, on the same
        writer. Caller metadata cannot override createdAt or type.

        Returns:
            The value for the caller: a fresh ByteStream carrying the same bytes
            for stream values (the original is drained by the write), the value
            itself otherwise.

        Raises:
            SerializationError: The value or metadata is not serializable.
                Raised before the store is touched.
            StoreError: The store failed.
        """
        with log_context(cache_key=key):
            encoded = encode(value)

            if metadata:
                ignored = [f for f in RESERVED_FIELDS if f in metadata]
                if ignored:
                    logger.warning("Ignoring reserved metadata fields", fields=ignored)
            header = build_header(encoded.type, self._clock(), metadata)
            header_bytes = dumps_json(header, subject="Metadata") + DELIMITER

            writer = await self._store_call(key, "open_write", self.store.open_write(key))
            try:
                await self._store_call(key, "write", writer.write(header_bytes))
                size = 0
                async for chunk in encoded.stream:
                    await self._store_call(key, "write", writer.write(chunk))
                    size += len(chunk)
                await self._store_call(key, "close", writer.close())
            except Exception:
                await self._abort(key, writer)
                raise

            logger.debug("Wrote cache entry", type=encoded.type.value, payload_bytes=size)
            return encoded.result

    async def _read(self, key: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.store.open_read(key):
                yield chunk
        except PMError:
            raise
        except Exception as e:
            raise StoreError(
                "Blob store read failed", context={"key": key, "operation": "read"}
            ) from e

    async def _store_call(self, key: str, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except PMError:
            raise
        except Exception as e:
            raise StoreError(
                f"Blob store {operation} failed",
                context={"key": key, "operation": operation},
            ) from e

    async def _abort(self, key: str, writer: BlobWriter) -> None:
        try:
            await writer.abort()
        except Exception:
            logger.warning("Failed to abort blob writer", exc_info=True, key=key)
