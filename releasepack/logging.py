"""Logging utilities for releasepack commands."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

_LOGGER_NAME = "releasepack"

_CONSOLE_FORMAT = "[%(component)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(component)s: %(message)s"


class _ComponentFilter(logging.Filter):
    """Tags records with the component that emitted them (``releasepack:scanner``)."""

    def filter(self, record: logging.LogRecord) -> bool:
        prefix = f"{_LOGGER_NAME}."
        suffix = record.name[len(prefix) :] if record.name.startswith(prefix) else ""
        record.component = f"{_LOGGER_NAME}:{suffix}" if suffix else _LOGGER_NAME
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the releasepack hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Install console and optional file handlers on the releasepack logger.

    ``verbose`` shows per-file scan details, ``quiet`` keeps only warnings
    such as skipped files and configuration fallbacks. The file sink always
    records DEBUG so a quiet run still leaves a full trail.
    """
    if verbose:
        console_level = logging.DEBUG
    elif quiet:
        console_level = logging.WARNING
    else:
        console_level = logging.INFO

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    component_filter = _ComponentFilter()

    stream_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    stream_handler.setLevel(console_level)
    stream_handler.addFilter(component_filter)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(component_filter)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
