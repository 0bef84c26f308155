"""Logging helpers for the sheetbind package."""

# Module responsibilities:
# - Configure the ``sheetbind`` logger once: rotating file under SHEETBIND_LOG_DIR plus stderr.
# - Hand out child loggers per module and let the CLI adjust verbosity.

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "sheetbind"
LOG_DIR_ENV = "SHEETBIND_LOG_DIR"
DEFAULT_LOG_BASE = Path.home() / ".sheetbind" / "logs"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
_console_handler: Optional[logging.Handler] = None


def _resolve_log_dir(log_dir: Optional[Path] = None) -> Path:
    """Pick the explicit directory, then the environment override, then the home default."""
    if log_dir is None:
        env_dir = os.environ.get(LOG_DIR_ENV)
        log_dir = Path(env_dir).expanduser() if env_dir else DEFAULT_LOG_BASE
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _configure_logging(log_dir: Optional[Path] = None) -> None:
    global _console_handler
    if _console_handler is not None:
        return

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = logging.handlers.RotatingFileHandler(
        _resolve_log_dir(log_dir) / "sheetbind.log", maxBytes=2_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.WARNING)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.INFO)
    package_logger.addHandler(file_handler)
    package_logger.addHandler(console_handler)
    package_logger.propagate = False

    _console_handler = console_handler


def get_logger(name: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """Return a package-scoped logger.

    Args:
        name: Module name appended to the ``sheetbind`` namespace.
        log_dir: Optional override for the logging directory (first call only).

    Returns:
        Logger named ``sheetbind.<name>``.
    """

    _configure_logging(log_dir)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


def set_log_level(level: str) -> int:
    """Apply ``level`` (e.g. ``"DEBUG"``) to the package logger and the console.

    Raises:
        ValueError: When ``level`` is not a logging level name.
    """

    value = getattr(logging, level.upper(), None)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    _configure_logging()
    logging.getLogger(PACKAGE_LOGGER).setLevel(value)
    if _console_handler is not None:
        _console_handler.setLevel(value)
    return value
