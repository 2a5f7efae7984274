"""Logging setup for mfe-build commands."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "mfe_build"


def configure_logging(
    level: str = "INFO",
    console: Console | None = None,
) -> logging.Logger:
    """Attach a rich console handler to the package logger.

    Args:
        level: Logging level name.
        console: Console to render into (stderr by default).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process don't duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    return logger


__all__ = ["configure_logging"]
