"""
Configuration management for Places Sync.

Environment-based configuration using python-dotenv for secure credential handling.
Class-level settings are read once on import; ``SyncSettings`` is the explicit
object handed to component constructors so tests can inject stub credentials.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .utils.exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()


class PlacesAPIConfig:
    """Upstream places provider configuration."""

    API_KEY: str = os.getenv("GOOGLE_PLACES_API_KEY", "")

    # "v1" (places:searchText) or "legacy" (textsearch/json)
    API_VERSION: str = os.getenv("PLACES_API_VERSION", "v1")

    LANGUAGE_CODE: str = os.getenv("PLACES_LANGUAGE_CODE", "en")

    MAX_RESULT_COUNT: int = int(os.getenv("PLACES_MAX_RESULTS", "20"))

    # Per-call timeout in seconds
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "10"))


class SyncConfig:
    """Staleness policy configuration."""

    # Records older than this are refreshed from the provider
    STALENESS_THRESHOLD_HOURS: float = float(os.getenv("STALENESS_THRESHOLD_HOURS", "24"))


class ThrottleConfig:
    """Outbound request pacing toward the provider."""

    MAX_CONCURRENT: int = int(os.getenv("THROTTLE_MAX_CONCURRENT", "1"))

    # Minimum spacing between consecutive request starts
    MIN_INTERVAL_MS: int = int(os.getenv("THROTTLE_MIN_INTERVAL_MS", "200"))


class BackoffConfig:
    """Retry policy for individual provider calls."""

    MAX_ATTEMPTS: int = int(os.getenv("BACKOFF_MAX_ATTEMPTS", "3"))

    # Delay before the second attempt, doubled for every further attempt
    BASE_DELAY_SECONDS: float = float(os.getenv("BACKOFF_BASE_DELAY", "0.5"))

    MAX_DELAY_SECONDS: float = float(os.getenv("BACKOFF_MAX_DELAY", "8.0"))


class StorageConfig:
    """Record store configuration."""

    DATA_DIR: Path = Path(os.getenv("DATA_DIR", "data"))

    DB_PATH: Path = Path(os.getenv("DB_PATH", str(DATA_DIR / "places.db")))


class SchedulerConfig:
    """Background stale-record refresh configuration."""

    REFRESH_INTERVAL_MINUTES: int = int(os.getenv("REFRESH_INTERVAL_MINUTES", "60"))

    # Maximum records refreshed per scheduled run
    REFRESH_BATCH_SIZE: int = int(os.getenv("REFRESH_BATCH_SIZE", "50"))


class LoggingConfig:
    """Logging configuration."""

    # Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "logs"))

    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    # Maximum log file size in bytes (10MB default)
    MAX_LOG_SIZE: int = int(os.getenv("MAX_LOG_SIZE", str(10 * 1024 * 1024)))

    # Number of backup log files to keep
    BACKUP_COUNT: int = int(os.getenv("BACKUP_COUNT", "5"))


@dataclass(frozen=True)
class SyncSettings:
    """Process-wide settings, built once before serving traffic.

    Attributes:
        api_key: Provider API key (required)
        api_version: Provider payload generation ("v1" or "legacy")
        language_code: Language requested from the provider
        max_result_count: Maximum text-search results requested
        request_timeout: Per-call timeout in seconds
        staleness_threshold_hours: Age at which a cached record is refreshed
        throttle_max_concurrent: Provider calls allowed in flight at once
        throttle_min_interval_ms: Minimum spacing between call starts
        backoff_max_attempts: Total attempts per provider call
        backoff_base_delay: Delay before the first retry in seconds
        backoff_max_delay: Cap on any single retry delay in seconds
        db_path: SQLite database file
        refresh_interval_minutes: Background refresh interval
        refresh_batch_size: Records refreshed per background run
    """

    api_key: str
    api_version: str = "v1"
    language_code: str = "en"
    max_result_count: int = 20
    request_timeout: float = 10.0
    staleness_threshold_hours: float = 24.0
    throttle_max_concurrent: int = 1
    throttle_min_interval_ms: int = 200
    backoff_max_attempts: int = 3
    backoff_base_delay: float = 0.5
    backoff_max_delay: float = 8.0
    db_path: Path = field(default_factory=lambda: Path("data") / "places.db")
    refresh_interval_minutes: int = 60
    refresh_batch_size: int = 50

    @classmethod
    def from_env(cls, api_key: Optional[str] = None) -> "SyncSettings":
        """Create settings from the class-level environment configuration."""
        return cls(
            api_key=api_key if api_key is not None else PlacesAPIConfig.API_KEY,
            api_version=PlacesAPIConfig.API_VERSION,
            language_code=PlacesAPIConfig.LANGUAGE_CODE,
            max_result_count=PlacesAPIConfig.MAX_RESULT_COUNT,
            request_timeout=PlacesAPIConfig.REQUEST_TIMEOUT,
            staleness_threshold_hours=SyncConfig.STALENESS_THRESHOLD_HOURS,
            throttle_max_concurrent=ThrottleConfig.MAX_CONCURRENT,
            throttle_min_interval_ms=ThrottleConfig.MIN_INTERVAL_MS,
            backoff_max_attempts=BackoffConfig.MAX_ATTEMPTS,
            backoff_base_delay=BackoffConfig.BASE_DELAY_SECONDS,
            backoff_max_delay=BackoffConfig.MAX_DELAY_SECONDS,
            db_path=StorageConfig.DB_PATH,
            refresh_interval_minutes=SchedulerConfig.REFRESH_INTERVAL_MINUTES,
            refresh_batch_size=SchedulerConfig.REFRESH_BATCH_SIZE,
        )

    @property
    def staleness_threshold(self) -> timedelta:
        return timedelta(hours=self.staleness_threshold_hours)

    @property
    def throttle_min_interval(self) -> float:
        """Minimum start spacing in seconds."""
        return self.throttle_min_interval_ms / 1000.0

    def collect_errors(self) -> list[str]:
        """Return every configuration problem found."""
        errors = []

        if not self.api_key:
            errors.append("GOOGLE_PLACES_API_KEY is not configured")

        if self.api_version not in ("v1", "legacy"):
            errors.append("PLACES_API_VERSION must be 'v1' or 'legacy'")

        if self.staleness_threshold_hours <= 0:
            errors.append("STALENESS_THRESHOLD_HOURS must be greater than 0")

        if self.throttle_max_concurrent < 1:
            errors.append("THROTTLE_MAX_CONCURRENT must be at least 1")

        if self.throttle_min_interval_ms < 0:
            errors.append("THROTTLE_MIN_INTERVAL_MS cannot be negative")

        if self.backoff_max_attempts < 1:
            errors.append("BACKOFF_MAX_ATTEMPTS must be at least 1")

        if self.backoff_base_delay < 0 or self.backoff_max_delay < 0:
            errors.append("Backoff delays cannot be negative")

        if self.request_timeout <= 0:
            errors.append("REQUEST_TIMEOUT must be greater than 0")

        return errors

    def validate(self) -> "SyncSettings":
        """
        Fail fast on invalid settings.

        Returns:
            The same settings instance, for chaining

        Raises:
            ConfigurationError: If any setting is missing or invalid
        """
        errors = self.collect_errors()
        if errors:
            raise ConfigurationError("Invalid configuration", errors=errors)
        return self


class AppConfig:
    """Main application configuration aggregating all config classes."""

    places = PlacesAPIConfig
    sync = SyncConfig
    throttle = ThrottleConfig
    backoff = BackoffConfig
    storage = StorageConfig
    scheduler = SchedulerConfig
    logging = LoggingConfig

    # Application metadata
    APP_NAME: str = "Places Sync"
    VERSION: str = "0.1.0"

    @classmethod
    def validate(cls) -> tuple[bool, list[str]]:
        """
        Validate configuration settings.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = SyncSettings.from_env().collect_errors()
        return (len(errors) == 0, errors)
