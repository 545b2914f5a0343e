"""
Cache key generation.

Keys are ``prefix/name/version/fn_name/fn_version/<sha1 of arguments>``.
Arguments are hashed from a canonical JSON form (sorted object keys) so that
equal arguments always produce the same key.
"""

from __future__ import annotations

import hashlib
from typing import Any, Mapping, Sequence

import orjson

from pmemo.exceptions import SerializationError


def canonical_arguments(args: Sequence[Any], kwargs: Mapping[str, Any] | None = None) -> bytes:
    """Serialize call arguments to canonical JSON bytes.

    Raises:
        SerializationError: An argument is not JSON serializable.
    """
    try:
        return orjson.dumps(
            {"args": list(args), "kwargs": dict(kwargs or {})},
            option=orjson.OPT_SORT_KEYS,
        )
    except orjson.JSONEncodeError as e:
        raise SerializationError(
            "Arguments are not JSON serializable", context={"reason": str(e)}
        ) from e


def hash_arguments(args: Sequence[Any], kwargs: Mapping[str, Any] | None = None) -> str:
    """SHA-1 hex digest of the canonical arguments."""
    return hashlib.sha1(canonical_arguments(args, kwargs)).hexdigest()  # noqa: S324


def compute_key(*segments: str) -> str:
    """Join key segments with ``/``."""
    return "/".join(segments)
