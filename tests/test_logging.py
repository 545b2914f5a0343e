"""
Tests for structured logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import orjson
import pytest

from pmemo.logging import get_cache_key, get_fn_name, get_logger, log_context, setup_logging


@pytest.fixture
def log_file(temp_dir: Path) -> Generator[Path, None, None]:
    """Route pmemo logs to a JSON Lines file for the duration of a test."""
    path = temp_dir / "logs" / "pmemo.jsonl"
    setup_logging("DEBUG", log_file=path, console_output=False)
    yield path
    setup_logging()


def read_entries(path: Path) -> list[dict]:
    return [orjson.loads(line) for line in path.read_text().splitlines()]


class TestLogContext:
    def test_sets_and_restores(self) -> None:
        """Test that context values are scoped to the block."""
        assert get_cache_key() is None

        with log_context(cache_key="a/b", fn_name="fn"):
            assert get_cache_key() == "a/b"
            assert get_fn_name() == "fn"
            with log_context(cache_key="c/d"):
                assert get_cache_key() == "c/d"
                assert get_fn_name() == "fn"
            assert get_cache_key() == "a/b"

        assert get_cache_key() is None
        assert get_fn_name() is None


class TestJSONLogging:
    def test_fields_and_context_written(self, log_file: Path) -> None:
        """Test that keyword fields and context land in the JSON entry."""
        logger = get_logger("tests")
        with log_context(cache_key="p/n/v/fn/latest/abc", fn_name="fn"):
            logger.debug("Cache hit", expired=False)

        [entry] = read_entries(log_file)
        assert entry["message"] == "Cache hit"
        assert entry["level"] == "DEBUG"
        assert entry["logger"] == "pmemo.tests"
        assert entry["cache_key"] == "p/n/v/fn/latest/abc"
        assert entry["fn_name"] == "fn"
        assert entry["fields"] == {"expired": False}

    def test_exception_info(self, log_file: Path) -> None:
        """Test that exc_info keeps its standard meaning."""
        logger = get_logger("tests")
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.warning("Failed", exc_info=True, key="k")

        [entry] = read_entries(log_file)
        assert "RuntimeError: boom" in entry["exception"]
        assert entry["fields"] == {"key": "k"}

    def test_level_filters(self, temp_dir: Path) -> None:
        """Test that records below the configured level are dropped."""
        path = temp_dir / "warn.jsonl"
        setup_logging("WARNING", log_file=path, console_output=False)
        try:
            logger = get_logger("tests")
            logger.debug("hidden")
            logger.warning("shown")
        finally:
            setup_logging()

        assert [e["message"] for e in read_entries(path)] == ["shown"]

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            setup_logging("LOUD")


class TestGetLogger:
    def test_namespacing(self) -> None:
        assert get_logger("pmemo.record").name == "pmemo.record"
        assert get_logger("elsewhere").name == "pmemo.elsewhere"
