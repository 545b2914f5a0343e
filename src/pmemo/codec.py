"""
Payload codec.

Maps a cacheable value to ``(type tag, byte stream)`` for writing, and
``(type tag, byte stream)`` back to a value for reading. Stateless.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import orjson

from pmemo.exceptions import DecodeError, SerializationError, UnknownTypeError
from pmemo.streams import ByteStream, Tee
from pmemo.types import BytesPayload, PayloadType, StreamPayload, classify


@dataclass(frozen=True)
class EncodedPayload:
    """Result of encoding a value.

    Attributes:
        type: Type tag to record in the header.
        stream: Bytes to write after the header.
        result: What the caller of ``set`` receives back. For streams this is a
            tee branch of the original, since the original is drained by the
            write path.
    """

    type: PayloadType
    stream: ByteStream
    result: Any


def dumps_json(value: Any, subject: str = "Value") -> bytes:
    """Serialize ``value`` to compact JSON, raising SerializationError on failure."""
    try:
        return orjson.dumps(value)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise SerializationError(
            f"{subject} is not JSON serializable",
            context={"value_type": type(value).__name__, "reason": str(e)},
        ) from e


def encode(value: Any) -> EncodedPayload:
    """Encode a raw or tagged value for writing.

    Raises:
        SerializationError: The value is not a stream, buffer or JSON value.
    """
    payload = classify(value)

    if isinstance(payload, StreamPayload):
        to_store, to_caller = Tee(payload.stream)
        return EncodedPayload(PayloadType.STREAM, to_store, to_caller)

    if isinstance(payload, BytesPayload):
        return EncodedPayload(
            PayloadType.BUFFER, ByteStream.from_bytes(payload.data), payload.data
        )

    body = dumps_json(payload.value)
    return EncodedPayload(PayloadType.JSON, ByteStream.from_bytes(body), payload.value)


async def decode(type_tag: str | PayloadType, stream: ByteStream) -> Any:
    """Decode a payload stream according to its type tag.

    Returns:
        The live stream for ``stream``, bytes for ``buffer``, the parsed value
        for ``json``.

    Raises:
        UnknownTypeError: The tag is not json/buffer/stream.
        DecodeError: A json payload does not parse.
    """
    try:
        payload_type = PayloadType(type_tag)
    except ValueError as e:
        raise UnknownTypeError(
            f"Unknown payload type: {type_tag!r}", context={"type": type_tag}
        ) from e

    if payload_type is PayloadType.STREAM:
        return stream

    if payload_type is PayloadType.BUFFER:
        return await stream.read()

    raw = await stream.read()
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise DecodeError(
            "JSON payload could not be decoded",
            context={"size": len(raw), "reason": str(e)},
        ) from e
