"""Logging setup.

The CLI calls `configure_logging` once; everything else logs through the
logger carried by the operation context. Output goes to stderr through
Rich so it never mixes with command output on stdout.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "rexray"


def parse_level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level {value!r}")
    return level


def configure_logging(level: str | int = "WARNING", *, console: Console | None = None) -> logging.Logger:
    """Configure and return the ``rexray`` logger (idempotent)."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(parse_level(level))

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
