"""
persistent-memoize: content-addressed memoization of async functions on
pluggable blob stores.
"""

from __future__ import annotations

from pmemo.config import MemoizeConfig, Settings, get_settings
from pmemo.exceptions import (
    ConfigurationError,
    CorruptHeaderError,
    DecodeError,
    PMError,
    SerializationError,
    StoreError,
    StreamConsumedError,
    UnknownTypeError,
)
from pmemo.memoize import Memoizer
from pmemo.record import CacheRecordEngine
from pmemo.store import (
    BlobStore,
    BlobWriter,
    FileSystemBlobStore,
    MemoryBlobStore,
    SqliteBlobStore,
    create_store,
)
from pmemo.streams import ByteStream, Tee
from pmemo.types import (
    BytesPayload,
    CacheHit,
    CacheLookupResult,
    CacheMiss,
    JsonPayload,
    PayloadType,
    StreamPayload,
)

__version__ = "0.3.0"

__all__ = [
    "BlobStore",
    "BlobWriter",
    "ByteStream",
    "BytesPayload",
    "CacheHit",
    "CacheLookupResult",
    "CacheMiss",
    "CacheRecordEngine",
    "ConfigurationError",
    "CorruptHeaderError",
    "DecodeError",
    "FileSystemBlobStore",
    "JsonPayload",
    "Memoizer",
    "MemoizeConfig",
    "MemoryBlobStore",
    "PMError",
    "PayloadType",
    "SerializationError",
    "Settings",
    "SqliteBlobStore",
    "StoreError",
    "StreamConsumedError",
    "StreamPayload",
    "Tee",
    "UnknownTypeError",
    "__version__",
    "create_store",
    "get_settings",
]
