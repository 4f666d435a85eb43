"""
Utils Module

Shared utilities, helpers, and common functionality.

Components:
    - logger: Logging with daily rotation and colorized output
    - exceptions: Error taxonomy shared by every layer
"""

from places_sync.utils.exceptions import (
    APIError,
    AuthError,
    BadRequestError,
    ConfigurationError,
    DataNormalizationError,
    InternalError,
    PlacesSyncError,
    RateLimitError,
    RecordUnavailableError,
    ServerError,
    StorageError,
    UpstreamExhaustionError,
    UpstreamResponseError,
)

__all__ = [
    # Exceptions
    "PlacesSyncError",
    "ConfigurationError",
    "BadRequestError",
    "APIError",
    "RateLimitError",
    "ServerError",
    "AuthError",
    "UpstreamResponseError",
    "UpstreamExhaustionError",
    "RecordUnavailableError",
    "InternalError",
    "StorageError",
    "DataNormalizationError",
    # Logger utilities
    "LoggerConfig",
    "setup_logger",
    "get_logger",
]

_LOGGER_EXPORTS = {"LoggerConfig", "setup_logger", "get_logger"}


# Lazy logger imports: the logger reads config, which itself imports exceptions
def __getattr__(name):
    if name in _LOGGER_EXPORTS:
        from places_sync.utils import logger
        return getattr(logger, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
