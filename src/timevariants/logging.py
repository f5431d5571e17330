"""Logging setup for timevariants.

The console stream is meant for whoever is watching a long benchmark
run.  Progress lines carry their own short prefixes (``remark:``,
``dryrun:``, ``...`` for trace) and are printed as-is; warnings and
errors get a lowercase ``warning:``/``error:`` tag.  An optional log
file records everything at DEBUG level with timestamps, which is where
to look when a timing run looks off.

Timing records never go through logging; they are written directly to
the per-variant output files.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "timevariants"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class _ConsoleFormatter(logging.Formatter):
    """Plain messages for progress; a level tag for problems."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.lower()}: {message}"
        return message


def setup_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Configure and return the root timevariants logger.

    Args:
        verbose: Show trace output (DEBUG) on the console, including
            each timed duration and the command lines being run.
        log_file: If provided, also log everything at DEBUG level here.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Reconfiguring replaces the previous handlers.
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(_ConsoleFormatter("%(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger under the timevariants namespace."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
