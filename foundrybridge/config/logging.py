"""
Logging configuration and setup.

Everything hangs off the ``foundrybridge`` package logger, so library modules
just use ``logging.getLogger(__name__)``. The console handler writes colored
output to stderr (stdout is reserved for CLI JSON); a plain-text file handler
is added when ``settings.log_file`` is set. Both handlers mask session
cookies, passwords and API keys that end up in a message.
"""

import copy
import logging
import re
import sys
from pathlib import Path

from foundrybridge.config.settings import Settings

PACKAGE_LOGGER = "foundrybridge"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that adds color to the level name."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        # Other handlers format the same record object
        colored = copy.copy(record)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


class SecretFilter(logging.Filter):
    """Replace session tokens, passwords and API keys in messages with ``***``."""

    PATTERNS = [
        re.compile(r"(session=)[^;\s&'\"]+"),
        re.compile(r"""(["']?(?:password|api_key|x-api-key)["']?\s*[:=]\s*["']?)[^\s,'"}]+""", re.IGNORECASE),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = message
        for pattern in self.PATTERNS:
            masked = pattern.sub(r"\1***", masked)
        if masked != message:
            record.msg, record.args = masked, None
        return True


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(SecretFilter())
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(SecretFilter())
    return handler


def setup_logging(settings: Settings) -> None:
    """
    Configure the package logger from settings.

    Safe to call again; previous handlers are closed and replaced.

    Args:
        settings: Application settings containing log configuration
    """
    level = getattr(logging, settings.log_level)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.addHandler(_console_handler(level))
    if settings.log_file:
        package_logger.addHandler(_file_handler(Path(settings.log_file), level))

    # Don't propagate to root logger
    package_logger.propagate = False

    package_logger.debug(
        f"Logging initialized - Level: {settings.log_level}, "
        f"file: {settings.log_file or 'none'}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the package logger.

    Args:
        name: Logger name (typically __name__)
    """
    if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
