"""
Structured logging for persistent-memoize.

Records carry the cache key and memoized function name of the call that
produced them, taken from context variables set with log_context(). Keyword
arguments given to a logger call become structured fields:

    logger = get_logger(__name__)
    with log_context(cache_key=key, fn_name="fetch"):
        logger.debug("Cache hit", expired=False)

Console output goes through rich on stderr; setup_logging(log_file=...) adds a
JSON Lines file.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

ROOT_LOGGER_NAME = "pmemo"

# Keyword arguments that logging.Logger._log understands itself
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_cache_key_var: ContextVar[str | None] = ContextVar("cache_key", default=None)
_fn_name_var: ContextVar[str | None] = ContextVar("fn_name", default=None)

_console: Console | None = None
_configured = False


def get_cache_key() -> str | None:
    """Cache key of the lookup or write in progress, if any."""
    return _cache_key_var.get()


def get_fn_name() -> str | None:
    return _fn_name_var.get()


@contextmanager
def log_context(cache_key: str | None = None, fn_name: str | None = None) -> Iterator[None]:
    """Attach a cache key and/or function name to records logged in the block.

    Arguments left as None keep the enclosing value.
    """
    tokens = []
    if cache_key is not None:
        tokens.append((_cache_key_var, _cache_key_var.set(cache_key)))
    if fn_name is not None:
        tokens.append((_fn_name_var, _fn_name_var.set(fn_name)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _context_fields() -> dict[str, str]:
    fields = {"cache_key": get_cache_key(), "fn_name": get_fn_name()}
    return {name: value for name, value in fields.items() if value}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
        }
        fields = getattr(record, "fields", None)
        if fields:
            entry["fields"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(entry, default=str).decode("utf-8")


class ContextRichHandler(RichHandler):
    """Rich handler that shows the function name and key tail next to the level."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)
        fn_name = get_fn_name()
        cache_key = get_cache_key()
        if not fn_name and not cache_key:
            return level_text

        suffix = Text()
        if fn_name:
            suffix.append(f" {fn_name}", style="magenta")
        if cache_key:
            # Keys end in a 40-char digest; the tail is enough to tell them apart
            suffix.append(f" {cache_key[-12:]}", style="dim")
        return Text.assemble(level_text, suffix)


class ContextLogger(logging.LoggerAdapter):
    """LoggerAdapter that turns keyword arguments into structured fields.

    ``logger.debug("Wrote blob", path=p)`` is logged with
    ``record.fields == {"path": p}``. The standard ``exc_info``,
    ``stack_info`` and ``stacklevel`` keywords keep their usual meaning.
    """

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOGGING_KWARGS}
        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = {**extra.get("fields", {}), **fields}
        kwargs["extra"] = extra
        return msg, kwargs


def get_console() -> Console:
    """Shared stderr console used by the rich handler."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "WARNING",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Configure the ``pmemo`` logger tree. Safe to call again to reconfigure.

    Args:
        log_level: Level name for the logger and console handler.
        log_file: Optional JSON Lines file; it receives every record that
            passes the logger level.
        console_output: Whether to log to the rich console.
    """
    global _configured

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    handlers: list[logging.Handler] = []
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)
    if console_output:
        console_handler = ContextRichHandler(
            console=get_console(),
            level=level,
            show_path=False,
            rich_tracebacks=True,
        )
        handlers.append(console_handler)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> ContextLogger:
    """Return a ContextLogger under the ``pmemo`` namespace.

    Configures logging with defaults on first use.
    """
    if not _configured:
        setup_logging()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return ContextLogger(logging.getLogger(name))
