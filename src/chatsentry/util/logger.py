"""
logger.py
=========

Logging for chatsentry. Every module asks for ``get_logger(<module>)`` and gets
a child of the ``chatsentry`` logger that writes to:

- the console through prompt_toolkit (coloured when stderr is a terminal),
  at ``CHATSENTRY_LOG_LEVEL`` (default INFO);
- one rotating file per process under ``CHATSENTRY_LOG_DIR`` (default
  ``<repo>/logs``), at DEBUG.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

ROOT_LOGGER_NAME = "chatsentry"

LOGS_DIR: Path = Path(os.getenv("CHATSENTRY_LOG_DIR") or Path(__file__).parents[3] / "logs").resolve()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;31m",
}
RESET_COLOR = "\033[0m"

MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

NOISY_LOGGERS = (
    "openai",
    "httpx",
    "httpcore",
    "discord",
    "discord.gateway",
    "discord.http",
    "websockets",
    "aiohttp",
)

_log_filepath: Path | None = None


class ColorFormatter(logging.Formatter):
    """Formatter that wraps each line in the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LOG_COLORS.get(record.levelname)
        return f"{color}{message}{RESET_COLOR}" if color else message


class PromptToolkitHandler(logging.Handler):
    """Console handler printing via prompt_toolkit so an active prompt is not torn."""

    def __init__(self, formatter: logging.Formatter | None = None):
        super().__init__()
        if formatter:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    """True when stderr is a terminal."""
    try:
        return sys.stderr.isatty()
    except (AttributeError, ValueError):
        return False


def console_level() -> int:
    """Console level from ``CHATSENTRY_LOG_LEVEL``; unknown names fall back to INFO."""
    level = logging.getLevelName((os.getenv("CHATSENTRY_LOG_LEVEL") or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_log_filepath() -> Path:
    """Session log file, created on first use and shared by every logger."""
    global _log_filepath
    if _log_filepath is None:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        _log_filepath = LOGS_DIR / f"chatsentry-{datetime.now():%Y%m%d-%H%M%S}-{os.getpid()}.log"
    return _log_filepath


def setup_logger(logger_name: str) -> logging.Logger:
    """Attach the console and file handlers to `logger_name` once."""
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    plain = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = PromptToolkitHandler(ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain)
    console.setLevel(console_level())
    logger.addHandler(console)

    file_handler = RotatingFileHandler(
        get_log_filepath(),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(plain)
    logger.addHandler(file_handler)
    return logger


def get_logger(logger_name: str) -> logging.Logger:
    """Logger for a chatsentry module, e.g. ``get_logger("batch_coordinator")``."""
    if logger_name != ROOT_LOGGER_NAME and not logger_name.startswith(ROOT_LOGGER_NAME + "."):
        logger_name = f"{ROOT_LOGGER_NAME}.{logger_name}"
    return setup_logger(logger_name)


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` that logs uncaught exceptions; Ctrl+C keeps the default behaviour."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    logging.getLogger(ROOT_LOGGER_NAME).error(
        "Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback)
    )


def silence_noisy_loggers(names=NOISY_LOGGERS) -> None:
    """Only let errors through from chatty third-party libraries."""
    for name in names:
        noisy = logging.getLogger(name)
        noisy.setLevel(logging.ERROR)
        noisy.propagate = False
        noisy.handlers = []


silence_noisy_loggers()
sys.excepthook = handle_exception
