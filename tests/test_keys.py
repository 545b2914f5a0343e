"""
Tests for cache key generation.
"""

from __future__ import annotations

import hashlib

import pytest

from pmemo.exceptions import SerializationError
from pmemo.keys import canonical_arguments, compute_key, hash_arguments


class TestHashArguments:
    """Test argument hashing."""

    def test_deterministic(self) -> None:
        """Test that equal arguments hash equally."""
        assert hash_arguments((1, "a"), {"x": [1, 2]}) == hash_arguments((1, "a"), {"x": [1, 2]})

    def test_is_sha1_of_canonical_json(self) -> None:
        """Test the digest format."""
        digest = hash_arguments((2,))

        assert len(digest) == 40
        assert digest == hashlib.sha1(b'{"args":[2],"kwargs":{}}').hexdigest()

    def test_key_order_does_not_matter(self) -> None:
        """Test that dict and kwarg ordering is canonicalized."""
        a = hash_arguments(({"b": 1, "a": 2},), {"y": 1, "x": 2})
        b = hash_arguments(({"a": 2, "b": 1},), {"x": 2, "y": 1})
        assert a == b

    def test_different_arguments_differ(self) -> None:
        """Test that positional and keyword forms are distinct."""
        assert hash_arguments((1,)) != hash_arguments((2,))
        assert hash_arguments((1,)) != hash_arguments((), {"x": 1})

    def test_canonical_form(self) -> None:
        """Test the canonical JSON bytes."""
        assert canonical_arguments(("s", None), {"k": {"z": 1, "a": 0}}) == (
            b'{"args":["s",null],"kwargs":{"k":{"a":0,"z":1}}}'
        )

    def test_unserializable_arguments(self) -> None:
        """Test that arguments must be JSON serializable."""
        with pytest.raises(SerializationError):
            hash_arguments((object(),))


class TestComputeKey:
    """Test key composition."""

    def test_join(self) -> None:
        """Test that segments are joined with slashes."""
        assert compute_key("p", "app", "1.0", "fn", "latest", "abc") == "p/app/1.0/fn/latest/abc"
