"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    BotConfig,
    FileLoggingConfig,
    LoggingConfig,
    RuntimeConfig,
    ServiceConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "BotConfig",
    # Sections
    "LoggingConfig",
    "FileLoggingConfig",
    "RuntimeConfig",
    "ServiceConfig",
]
