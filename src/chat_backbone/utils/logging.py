"""Structured logging configuration.

Modules log through ``structlog.get_logger()`` with snake_case event names
and keyword fields. ``configure_logging`` routes those events through the
stdlib logging handlers, rendered as JSON lines or for the console.

Each line names the component it came from in a ``source`` field, built
from the ``bot`` and ``service`` (or ``chat``) fields. The runner binds the
bot name for the whole run; ``Bot`` binds both names around each service's
initialize and shutdown with ``service_context``, so log lines from inside
a service carry them without passing them explicitly.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from contextlib import AbstractContextManager
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger()


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


def add_source(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add ``source="<bot>/<service>"`` naming the component that logged.

    Chat events name their service in ``chat`` rather than ``service``.
    Lines logged outside any bot or service get no ``source``.
    """
    component = event_dict.get("service") or event_dict.get("chat")
    parts = [str(part) for part in (event_dict.get("bot"), component) if part]
    if parts:
        event_dict["source"] = "/".join(parts)
    return event_dict


def service_context(bot: str, service: str) -> AbstractContextManager[None]:
    """Bind the bot and service names for everything logged inside the block.

    Example:
        with service_context("helper", "chat"):
            await chat.initialize()  # log lines carry source="helper/chat"
    """
    return structlog.contextvars.bound_contextvars(bot=bot, service=service)


def _renderers(log_format: LogFormat) -> list[Any]:
    if log_format == LogFormat.JSON:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    # The console renderer formats exceptions itself
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def _handlers(file_path: Path | str | None) -> tuple[list[logging.Handler], OSError | None]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path is None:
        return handlers, None

    path = Path(file_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    except OSError as e:
        return handlers, e
    return handlers, None


def configure_logging(
    level: str = "INFO",
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
) -> None:
    """Configure structlog and the stdlib handlers it writes through.

    Args:
        level: Log level name, case-insensitive
        log_format: ``json`` for log aggregation, ``console`` for development
        file_path: Also append to this file; None logs to stderr only. If the
            file cannot be opened, a warning is logged and stderr is kept.

    Raises:
        ValueError: If the level or format is unknown

    Example:
        configure_logging(level="DEBUG", log_format="console")
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    log_format = LogFormat(str(log_format).lower())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            add_source,
            structlog.processors.TimeStamper(fmt="iso"),
            *_renderers(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers, file_error = _handlers(file_path)
    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)

    if file_error is not None:
        log.warning("log_file_unavailable", path=str(file_path), error=str(file_error))
