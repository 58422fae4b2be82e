"""Logging setup for PerpLedger."""

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO, console: Console = None) -> None:
    """Configure the ``perpledger`` logger with rich console output.

    Args:
        level: Logging level name or number.
        console: Console to write to. Defaults to stderr.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("perpledger")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
