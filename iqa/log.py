"""Logging setup for the ``iqa`` logger namespace."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "iqa"


def debug_requested(verbose: bool) -> bool:
    """--verbose, or a workflow re-run with "Enable debug logging" (RUNNER_DEBUG=1)."""
    return verbose or os.environ.get("RUNNER_DEBUG") == "1"


def configure_logging(verbose: bool = False) -> None:
    """Route iqa logs to stderr through rich. Safe to call more than once."""
    logger = logging.getLogger(_LOGGER_NAME)
    logger.propagate = False
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug_requested(verbose) else logging.INFO)
