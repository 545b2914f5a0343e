"""
Tests for the pmemo CLI.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from typer.testing import CliRunner

from pmemo import __version__
from pmemo.cli.main import app
from pmemo.record import CacheRecordEngine
from pmemo.store import FileSystemBlobStore

runner = CliRunner()

KEY = "test-prefix/test-app/9.9.9/lookup/latest/abc123"


def write_entry(cache_dir: Path, key: str, value: Any) -> None:
    engine = CacheRecordEngine(FileSystemBlobStore(cache_dir))
    asyncio.run(engine.set(key, value, {"source": "cli-test"}))


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestConfig:
    def test_config_shows_settings(self, mock_env_vars: dict[str, str]) -> None:
        """Test that the settings table lists env values."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "test-app" in result.stdout
        assert "filesystem" in result.stdout

    def test_config_invalid(self, mock_env_vars: dict[str, str]) -> None:
        """Test that invalid settings exit with status 1."""
        result = runner.invoke(app, ["config"], env={"PMEMO_STORE_BACKEND": "redis"})

        assert result.exit_code == 1


class TestShow:
    def test_show_json_entry(self, mock_env_vars: dict[str, str]) -> None:
        """Test printing a stored JSON entry."""
        write_entry(Path(mock_env_vars["PMEMO_CACHE_DIR"]), KEY, {"x": 1})

        result = runner.invoke(app, ["show", KEY])

        assert result.exit_code == 0
        assert "fresh" in result.stdout
        assert '"x": 1' in result.stdout
        assert "cli-test" in result.stdout

    def test_show_bytes_entry(self, mock_env_vars: dict[str, str]) -> None:
        """Test previewing a stored buffer entry."""
        write_entry(Path(mock_env_vars["PMEMO_CACHE_DIR"]), KEY, b"raw bytes here")

        result = runner.invoke(app, ["show", KEY])

        assert result.exit_code == 0
        assert "raw bytes here" in result.stdout
        assert "buffer" in result.stdout

    def test_show_expired_entry(self, mock_env_vars: dict[str, str]) -> None:
        """Test that a zero max age reports the entry as expired."""
        write_entry(Path(mock_env_vars["PMEMO_CACHE_DIR"]), KEY, [1, 2, 3])

        result = runner.invoke(app, ["show", KEY, "--max-age", "0"])

        assert result.exit_code == 0
        assert "expired" in result.stdout

    def test_show_missing_key(self, mock_env_vars: dict[str, str]) -> None:
        """Test that a missing key exits with status 2."""
        result = runner.invoke(app, ["show", KEY])

        assert result.exit_code == 2
        assert "Cache miss" in result.stdout

    def test_show_invalid_key(self, mock_env_vars: dict[str, str]) -> None:
        """Test that store errors exit with status 1."""
        result = runner.invoke(app, ["show", "../outside"])

        assert result.exit_code == 1

    def test_show_raw(self, mock_env_vars: dict[str, str]) -> None:
        """Test that --raw writes only the payload."""
        write_entry(Path(mock_env_vars["PMEMO_CACHE_DIR"]), KEY, {"x": 1})

        result = runner.invoke(app, ["show", KEY, "--raw"], env={"PMEMO_LOG_LEVEL": "WARNING"})

        assert result.exit_code == 0
        assert result.stdout == '{"x":1}'
