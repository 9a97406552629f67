"""Logging configuration for multifit.

Library modules log through ``logging.getLogger(__name__)`` below the
``multifit`` logger; nothing is emitted until ``setup_logging`` attaches
handlers to it.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from rich.logging import RichHandler

from multifit.ui.console import VERSION, console

if TYPE_CHECKING:
    from multifit.core.domain.config import LoggingConfig

LOGGER_NAME = "multifit"

# Package logger (configured by setup_logging)
_logger: logging.Logger | None = None

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(
    log_file: Path | None = None,
    verbose: bool = False,
    level: int = logging.INFO,
    log_format: str | None = None,
) -> logging.Logger | None:
    """Configure the ``multifit`` logger.

    Args:
        log_file: Write records to this file. The format is JSON when
            ``log_format`` is "json" or the file has a ``.json`` suffix.
        verbose: Also log to the console through rich
        level: Logging level
        log_format: "text" or "json"; inferred from the file suffix if None

    Returns
    -------
        The configured logger, or None if neither a file nor the console
        was requested
    """
    global _logger

    close_logging()
    if log_file is None and not verbose:
        return None

    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(level)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setLevel(level)

        if log_format is None:
            log_format = "json" if log_file.suffix == ".json" else "text"
        if log_format == "json":
            file_formatter: logging.Formatter = JSONFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s | %(levelname)-5s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        file_handler.setFormatter(file_formatter)
        _logger.addHandler(file_handler)

    if verbose:
        console_handler = RichHandler(
            console=console,
            show_time=False,
            show_path=False,
            markup=False,
        )
        console_handler.setLevel(level)
        _logger.addHandler(console_handler)

    _logger.info("━" * 60)
    _logger.info("multifit v%s - Session Started", VERSION)
    _logger.info("━" * 60)
    _logger.info("Python: %s | Platform: %s", sys.version.split()[0], sys.platform)
    return _logger


def setup_logging_from_config(config: LoggingConfig) -> logging.Logger | None:
    """Configure logging from the ``[logging]`` configuration section."""
    return setup_logging(
        log_file=config.log_file,
        verbose=config.verbose,
        level=_LEVELS[config.level],
        log_format=config.log_format,
    )


def log(message: str, level: str = "info") -> None:
    """Log a message (if logging is enabled)."""
    if _logger is None:
        return
    _logger.log(_LEVELS.get(level.lower(), logging.INFO), message)


def log_section(title: str) -> None:
    """Log a section header."""
    if _logger is None:
        return

    _logger.info("")
    _logger.info("=== %s ===", title.upper())


def log_dict(data: dict[str, object], indent: str = "  ") -> None:
    """Log a dictionary as key-value pairs."""
    if _logger is None:
        return

    for key, value in data.items():
        _logger.info("%s- %s: %s", indent, key, value)


def close_logging() -> None:
    """Detach and close the handlers installed by ``setup_logging``."""
    global _logger

    if _logger is None:
        return

    _logger.info("━" * 60)
    _logger.info("multifit Session Completed")
    for handler in _logger.handlers[:]:
        handler.close()
        _logger.removeHandler(handler)
    _logger = None


__all__ = [
    "JSONFormatter",
    "LOGGER_NAME",
    "close_logging",
    "log",
    "log_dict",
    "log_section",
    "setup_logging",
    "setup_logging_from_config",
]
