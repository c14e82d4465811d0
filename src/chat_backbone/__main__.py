"""Entry point for running a bot from a configuration file.

It handles:
- Configuration loading
- Logging setup
- Building and starting the bot's services
- Signal handling for graceful shutdown
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from chat_backbone._version import __version__

log = structlog.get_logger()


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from chat_backbone.utils.logging import configure_logging

    configure_logging(level="DEBUG" if debug else "INFO", log_format=log_format)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="chat-backbone",
        description="Run a chat bot assembled from pluggable services",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/bot.yaml"),
        help="Path to configuration file (default: config/bot.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate config and construct services without starting them",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    return parser.parse_args(argv)


async def run_bot(config_path: Path, dry_run: bool = False) -> int:
    """Run a bot until SIGINT or SIGTERM.

    Args:
        config_path: Path to configuration file
        dry_run: If True, only validate config and build services

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from chat_backbone.config.loader import load_config
    from chat_backbone.core.bot import Bot
    from chat_backbone.errors import BackboneError
    from chat_backbone.utils.logging import configure_logging

    log.info("starting_chat_backbone", version=__version__, config_path=str(config_path))

    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except (ValueError, ValidationError, BackboneError) as e:
        log.error("configuration_invalid", error=str(e))
        return 1

    configure_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        file_path=config.logging.file.path if config.logging.file.enabled else None,
    )
    structlog.contextvars.bind_contextvars(bot=config.name)

    bot = Bot.from_config(config)

    if dry_run:
        try:
            bot.build_all()
        except BackboneError as e:
            log.error("dry_run_failed", error=str(e))
            return 1
        log.info("dry_run_mode_config_valid", services=list(bot.services))
        return 0

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)
        log.debug("signal_handler_registered", signal=sig.name)

    try:
        await bot.run()
    except BackboneError as e:
        log.error("bot_startup_failed", error=str(e))
        await bot.shutdown_all()
        return 1

    await stop.wait()
    log.info("shutdown_signal_received")

    try:
        await asyncio.wait_for(bot.shutdown_all(), timeout=config.runtime.shutdown_timeout)
    except TimeoutError:
        log.warning("shutdown_timed_out", timeout=config.runtime.shutdown_timeout)
        return 1
    return 0


def main() -> int:
    """Main entry point."""
    args = parse_args()

    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return asyncio.run(run_bot(args.config, args.dry_run))
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
