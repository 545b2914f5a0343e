"""
Core types for persistent-memoize.

- PayloadType: the type tag recorded in every envelope header
- JsonPayload / BytesPayload / StreamPayload: the tagged form of a cacheable value
- classify(): explicit classification of a raw value into its tagged form
- CacheHit / CacheMiss: results of a cache lookup
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pmemo.streams import ByteStream


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class PayloadType(str, Enum):
    """Type tag of an envelope payload."""

    JSON = "json"
    BUFFER = "buffer"
    STREAM = "stream"


@dataclass(frozen=True)
class JsonPayload:
    """Any JSON-serializable value."""

    value: Any
    type: PayloadType = field(default=PayloadType.JSON, init=False)


@dataclass(frozen=True)
class BytesPayload:
    """A raw byte buffer."""

    data: bytes
    type: PayloadType = field(default=PayloadType.BUFFER, init=False)


@dataclass(frozen=True)
class StreamPayload:
    """A live byte stream. Never materialized by the cache."""

    stream: ByteStream
    type: PayloadType = field(default=PayloadType.STREAM, init=False)


Payload = Union[JsonPayload, BytesPayload, StreamPayload]


def classify(value: Any) -> Payload:
    """Classify a raw value into its tagged payload form.

    Rules, checked in order:
        - JsonPayload/BytesPayload/StreamPayload are returned unchanged
        - ByteStream or any other async iterable -> StreamPayload
        - bytes, bytearray, memoryview -> BytesPayload
        - anything else -> JsonPayload (serializability is checked on encode)
    """
    if isinstance(value, (JsonPayload, BytesPayload, StreamPayload)):
        return value
    if isinstance(value, ByteStream):
        return StreamPayload(value)
    if isinstance(value, AsyncIterable):
        return StreamPayload(ByteStream(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesPayload(bytes(value))
    return JsonPayload(value)


@dataclass(frozen=True)
class CacheMiss:
    """The key is absent from the store."""

    @property
    def miss(self) -> bool:
        return True


@dataclass(frozen=True)
class CacheHit:
    """The key is present.

    ``expired`` is advisory: the caller decides whether an expired hit should
    be treated as a miss. For stream payloads ``value`` is a single-use
    ByteStream reading from the store.
    """

    expired: bool
    metadata: dict[str, Any]
    value: Any

    @property
    def miss(self) -> bool:
        return False

    @property
    def created_at(self) -> datetime | None:
        """Parsed createdAt, or None when it is missing or unparseable."""
        value = self.metadata.get("createdAt")
        return value if isinstance(value, datetime) else None

    @property
    def type(self) -> PayloadType:
        return PayloadType(self.metadata["type"])


CacheLookupResult = Union[CacheHit, CacheMiss]
