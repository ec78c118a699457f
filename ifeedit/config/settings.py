"""
iFeedIt Configuration System
============================

Settings are read from ``IFEEDIT_`` environment variables, then a ``.env``
file, then the defaults below. Nested sections use ``__`` as separator, e.g.
``IFEEDIT_FEED__URL`` or ``IFEEDIT_DATABASE__PATH``.

Only the feed URL, storage and logging are configurable. Network timeouts and
the image size cap are fixed constants of the ingestion package.
"""

from pathlib import Path
from typing import Optional, List
from enum import Enum

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError


DEFAULT_FEED_URL = "https://example.com/feed.xml"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FeedSettings(BaseModel):
    """Where items come from."""
    url: str = Field(default=DEFAULT_FEED_URL, description="RSS feed loaded by a plain refresh")

    @field_validator('url')
    @classmethod
    def require_http_url(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("Feed URL must start with http:// or https://")
        return v


class DatabaseSettings(BaseModel):
    """Where items are stored."""
    path: str = Field(default="data/ifeedit.db", description="SQLite database file")
    pool_size: int = Field(default=2, ge=1, le=20, description="Pooled SQLite connections")


class LoggingSettings(BaseModel):
    level: LogLevel = Field(default=LogLevel.INFO)
    file_path: Optional[str] = Field(default="logs/ifeedit.log", description="JSON log file, empty to disable")
    max_file_size_mb: int = Field(default=10, ge=1, le=100)
    backup_count: int = Field(default=5, ge=1, le=20)
    structured_logging: bool = Field(default=False, description="JSON lines on the console as well")
    console_logging: bool = Field(default=True)


class IFeedItSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="IFEEDIT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    feed: FeedSettings = Field(default_factory=FeedSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = "iFeedIt"
    version: str = "1.0.0"
    debug: bool = Field(default=False, description="Force DEBUG logging")

    def writable_paths(self) -> List[Path]:
        """Files the application writes to."""
        paths = [Path(self.database.path)]
        if self.logging.file_path:
            paths.append(Path(self.logging.file_path))
        return paths

    def prepare_directories(self) -> None:
        """Create parent directories of the database and log file.

        Raises:
            ConfigurationError: If a directory cannot be created
        """
        problems = []
        for path in self.writable_paths():
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                problems.append(f"{path}: {e}")

        if problems:
            raise ConfigurationError(
                f"Cannot create data directories: {'; '.join(problems)}",
                config_key="database.path",
            )

    def get_effective_log_level(self) -> str:
        """Log level after applying the debug switch."""
        return LogLevel.DEBUG.value if self.debug else self.logging.level.value


def load_settings() -> IFeedItSettings:
    """Load settings and make sure their directories exist.

    Raises:
        ConfigurationError: If a value is invalid or a directory cannot be created
    """
    load_dotenv()

    try:
        settings = IFeedItSettings()
    except ValidationError as e:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in e.errors())
        raise ConfigurationError(f"Invalid settings ({fields}): {e}") from e

    settings.prepare_directories()
    return settings


_settings: Optional[IFeedItSettings] = None


def get_settings(reload: bool = False) -> IFeedItSettings:
    """Process-wide settings, loaded on first use.

    Args:
        reload: Re-read the environment instead of returning the cached instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
