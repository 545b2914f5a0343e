"""
Configuration management.

Two layers:
- MemoizeConfig: the explicit configuration a Memoizer is constructed with.
  The caching core never reads the environment itself.
- Settings: pydantic-settings model loaded from PMEMO_* environment variables
  and .env files, used by the CLI and by applications that want
  environment-driven defaults (see Settings.to_memoize_config()).
"""

from __future__ import annotations

import math
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PREFIX = "persistent-memoize"
DEFAULT_NAME = "unknown_package"
DEFAULT_VERSION = "unknown_version"


def _validate_max_age(v: float | None) -> float | None:
    """Normalize a max age: None and +inf mean unbounded, negatives are rejected."""
    if v is None:
        return None
    if math.isnan(v) or v < 0:
        raise ValueError(f"max age must be a non-negative number of seconds, got {v!r}")
    if math.isinf(v):
        return None
    return v


class MemoizeConfig(BaseModel):
    """Namespace and default policy for a Memoizer.

    Attributes:
        prefix: First segment of every cache key.
        name: Application/package name, second key segment.
        version: Application/package version, third key segment.
        max_age: Default maximum entry age in seconds. None means unbounded.
        disable: When True, memoize() returns functions unchanged.
    """

    model_config = ConfigDict(frozen=True)

    prefix: str = Field(default=DEFAULT_PREFIX, min_length=1)
    name: str = Field(default=DEFAULT_NAME, min_length=1)
    version: str = Field(default=DEFAULT_VERSION, min_length=1)
    max_age: float | None = None
    disable: bool = False

    @field_validator("max_age")
    @classmethod
    def validate_max_age(cls, v: float | None) -> float | None:
        return _validate_max_age(v)


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    All variables are prefixed with PMEMO_:
        PMEMO_PREFIX: Cache key prefix
        PMEMO_NAME: Application name used in cache keys
        PMEMO_VERSION: Application version used in cache keys
        PMEMO_MAX_AGE: Default max age in seconds (unset = unbounded)
        PMEMO_DISABLE: Disable memoization entirely
        PMEMO_STORE_BACKEND: memory | filesystem | sqlite
        PMEMO_CACHE_DIR: Root directory for the filesystem/sqlite stores
        PMEMO_LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="PMEMO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PREFIX: str = Field(default=DEFAULT_PREFIX, min_length=1, description="Cache key prefix")
    NAME: str = Field(default=DEFAULT_NAME, min_length=1, description="Application name")
    VERSION: str = Field(
        default=DEFAULT_VERSION, min_length=1, description="Application version"
    )
    MAX_AGE: float | None = Field(
        default=None, description="Default max age in seconds (None = unbounded)"
    )
    DISABLE: bool = Field(default=False, description="Disable memoization")

    STORE_BACKEND: Literal["memory", "filesystem", "sqlite"] = Field(
        default="filesystem", description="Blob store backend"
    )
    CACHE_DIR: Path = Field(default=Path(".cache/pmemo"), description="Cache directory")

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level"
    )

    @field_validator("MAX_AGE")
    @classmethod
    def validate_max_age(cls, v: float | None) -> float | None:
        """Reject negative max ages; treat infinity as unbounded."""
        return _validate_max_age(v)

    @property
    def sqlite_path(self) -> Path:
        """Database file used by the sqlite backend."""
        return self.CACHE_DIR / "blobs.db"

    def to_memoize_config(self) -> MemoizeConfig:
        """Build the explicit MemoizeConfig these settings describe."""
        return MemoizeConfig(
            prefix=self.PREFIX,
            name=self.NAME,
            version=self.VERSION,
            max_age=self.MAX_AGE,
            disable=self.DISABLE,
        )

    def ensure_directories(self) -> None:
        """Create the cache directory if it doesn't exist."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    def redacted_display(self) -> dict[str, str | float | bool | None]:
        """Return settings for display."""
        return {
            "PREFIX": self.PREFIX,
            "NAME": self.NAME,
            "VERSION": self.VERSION,
            "MAX_AGE": self.MAX_AGE,
            "DISABLE": self.DISABLE,
            "STORE_BACKEND": self.STORE_BACKEND,
            "CACHE_DIR": str(self.CACHE_DIR),
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
