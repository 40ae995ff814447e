"""Logging configuration for the Reelshelf package."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from reelshelf.config import LoggingSettings

PACKAGE_LOGGER = "reelshelf"
_LOCK = threading.Lock()
_CONSOLE_HANDLER_NAME = "reelshelf-console"
_FILE_HANDLER_NAME = "reelshelf-file"


def configure_logging(
    settings: LoggingSettings,
    base_directory: Path,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Attach console and optional file handlers to the package logger.

    Calling this more than once only updates levels; handlers are never
    duplicated.

    Args:
        settings: Logging section of the configuration.
        base_directory: Directory the log directory is resolved against.
        console: Console for the rich handler; stderr is used when omitted.

    Returns:
        logging.Logger: The configured ``reelshelf`` logger.
    """
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    logger = logging.getLogger(PACKAGE_LOGGER)
    with _LOCK:
        logger.setLevel(level)
        names = {handler.get_name() for handler in logger.handlers}

        if _CONSOLE_HANDLER_NAME not in names:
            handler = RichHandler(
                console=console or Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
            handler.set_name(_CONSOLE_HANDLER_NAME)
            logger.addHandler(handler)

        if settings.file_enabled and _FILE_HANDLER_NAME not in names:
            directory = Path(settings.directory).expanduser()
            if not directory.is_absolute():
                directory = base_directory / directory
            directory.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            file_handler = RotatingFileHandler(
                directory / f"reelshelf_{stamp}.log",
                maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
                backupCount=max(0, settings.backup_count),
                encoding="utf-8",
            )
            file_handler.set_name(_FILE_HANDLER_NAME)
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
            )
            logger.addHandler(file_handler)

        for handler in logger.handlers:
            handler.setLevel(level)

    return logger


__all__ = ["configure_logging", "PACKAGE_LOGGER"]
