# Logging setup - Rich console logging for the CLI.
# Created: 2026-10-18

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """Route all logging through a single RichHandler on stderr.

    httpx and httpcore stay at WARNING.
    """
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
