"""
Memoization of async functions on top of the cache record engine.

Usage:
    store = FileSystemBlobStore(".cache/pmemo")
    memoize = Memoizer(store, MemoizeConfig(name="my-app", version="1.2.0"))

    @memoize(name="fetch_report", version="2")
    async def fetch_report(ticker: str) -> dict: ...

    # or
    cached_square = memoize(square, "square")
"""

from __future__ import annotations

import functools
import inspect
import math
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, TypeVar

from pmemo.config import MemoizeConfig
from pmemo.exceptions import ConfigurationError
from pmemo.keys import compute_key, hash_arguments
from pmemo.logging import get_logger, log_context
from pmemo.record import CacheRecordEngine, MaxAge
from pmemo.store.base import BlobStore
from pmemo.streams import ByteStream
from pmemo.types import utc_now

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_UNSET: Any = object()

DEFAULT_FN_NAME = "latest"
DEFAULT_FN_VERSION = "latest"


class Memoizer:
    """Wraps async functions so their results are cached in a blob store.

    A lookup that misses, or hits an entry older than the function's max age,
    calls the function and stores its result; the stored result is returned.
    Results may be JSON values, bytes, or async byte streams (returned as a
    ByteStream, both on the first call and when served from the cache).

    Args:
        store: Blob store holding the cache envelopes.
        config: Key namespace and defaults. Defaults to MemoizeConfig().
        clock: Current-time source, passed to the record engine.
    """

    def __init__(
        self,
        store: BlobStore,
        config: MemoizeConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not isinstance(store, BlobStore):
            raise ConfigurationError(
                "store must be a BlobStore", context={"store_type": type(store).__name__}
            )
        self.config = config or MemoizeConfig()
        self.cache = CacheRecordEngine(store, clock=clock)

    def __call__(
        self,
        fn: F | None = None,
        name: str = DEFAULT_FN_NAME,
        *,
        version: str = DEFAULT_FN_VERSION,
        max_age: MaxAge = _UNSET,
    ) -> Any:
        if fn is None:
            return functools.partial(self.memoize, name=name, version=version, max_age=max_age)
        return self.memoize(fn, name, version=version, max_age=max_age)

    def key_for(
        self,
        name: str,
        version: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> str:
        """Cache key for one call of the function ``name``/``version``."""
        return compute_key(
            self.config.prefix,
            self.config.name,
            self.config.version,
            name,
            version,
            hash_arguments(args, kwargs),
        )

    def memoize(
        self,
        fn: F,
        name: str = DEFAULT_FN_NAME,
        *,
        version: str = DEFAULT_FN_VERSION,
        max_age: MaxAge = _UNSET,
    ) -> F:
        """Return a memoized version of the coroutine function ``fn``.

        Args:
            fn: Coroutine function to wrap.
            name: Function name segment of the cache key.
            version: Function version segment; bump it to invalidate old results.
            max_age: Seconds (or timedelta) after which an entry is recomputed.
                Defaults to the Memoizer's configured max age.

        Raises:
            ConfigurationError: fn is not a coroutine function, or a key
                segment is empty.
        """
        if self.config.disable:
            return fn
        if not inspect.iscoroutinefunction(fn):
            raise ConfigurationError(
                "Only coroutine functions can be memoized",
                context={"fn": getattr(fn, "__qualname__", repr(fn))},
            )
        if not name or not version:
            raise ConfigurationError(
                "Function name and version must be non-empty",
                context={"name": name, "version": version},
            )
        effective_max_age = self.config.max_age if max_age is _UNSET else max_age
        if isinstance(effective_max_age, (int, float)) and (
            math.isnan(effective_max_age) or effective_max_age < 0
        ):
            raise ConfigurationError(
                "max_age must be a non-negative number of seconds",
                context={"max_age": effective_max_age},
            )
        if isinstance(effective_max_age, timedelta) and effective_max_age < timedelta(0):
            raise ConfigurationError(
                "max_age must be non-negative", context={"max_age": str(effective_max_age)}
            )

        def cache_key(*args: Any, **kwargs: Any) -> str:
            return self.key_for(name, version, args, kwargs)

        @functools.wraps(fn)
        async def memoized(*args: Any, **kwargs: Any) -> Any:
            key = cache_key(*args, **kwargs)
            with log_context(cache_key=key, fn_name=name):
                result = await self.cache.get(key, max_age=effective_max_age)
                if not result.miss:
                    if not result.expired:
                        logger.debug("Memoized call served from cache")
                        return result.value
                    logger.debug("Cached entry expired, recomputing")
                    if isinstance(result.value, ByteStream):
                        await result.value.aclose()

                value = await fn(*args, **kwargs)
                return await self.cache.set(key, value)

        memoized.cache_key = cache_key  # type: ignore[attr-defined]
        return memoized  # type: ignore[return-value]
