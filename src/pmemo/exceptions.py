"""
Custom exception hierarchy for persistent-memoize.

Everything the package raises on purpose derives from PMError. Each error
carries a ``context`` dict (key, operation, offending value...) that is shown
in its message and can be logged as structured fields.
"""

from __future__ import annotations

from typing import Any, Mapping


class PMError(Exception):
    """Base exception for all persistent-memoize errors.

    Args:
        message: What went wrong.
        context: Structured details, e.g. ``{"key": ..., "operation": ...}``.
    """

    def __init__(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{name}={value!r}" for name, value in self.context.items())
        return f"{self.message} ({details})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, context={self.context!r})"


class ConfigurationError(PMError):
    """Raised when configuration is invalid.

    Examples:
        - Memoizer constructed with something that is not a BlobStore
        - Unsupported STORE_BACKEND
        - Wrapping a function that is not a coroutine function
    """

    pass


class StoreError(PMError):
    """Raised when the blob store fails (existence check, read or write).

    Context should include:
        - key: The cache key being accessed
        - operation: "exists", "read", "open_write", "write" or "close"
    """

    pass


class CorruptHeaderError(PMError):
    """Raised when an envelope header cannot be parsed.

    Covers headers that are not a JSON object, entries that end before the
    header delimiter and unparseable createdAt timestamps.
    """

    pass


class SerializationError(PMError):
    """Raised when a value (or its metadata) cannot be serialized for storage.

    Always raised before anything is written to the store.
    """

    pass


class DecodeError(PMError):
    """Raised when payload bytes do not decode per the declared type."""

    pass


class UnknownTypeError(PMError):
    """Raised when a header declares a type outside json/buffer/stream."""

    pass


class StreamConsumedError(PMError):
    """Raised when a single-use ByteStream is iterated a second time."""

    pass
