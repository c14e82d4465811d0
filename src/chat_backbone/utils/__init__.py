"""Utility functions and helpers.

This module provides various utilities for chat-backbone:
- logging: Structured logging configuration and per-service log context
- retry: Retry decorators for transport connections
"""

from chat_backbone.utils.logging import (
    LogFormat,
    add_source,
    configure_logging,
    service_context,
)
from chat_backbone.utils.retry import create_retry

__all__ = [
    # Logging
    "LogFormat",
    "add_source",
    "configure_logging",
    "service_context",
    # Retry
    "create_retry",
]
