"""Logging setup for the CLI.

Log records go to stderr through rich so stdout stays free for the
summary and --json output.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str | int = "INFO") -> None:
    """Install a RichHandler on the root logger and set its level.

    Calling this more than once only updates the level.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root_logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


__all__ = ["configure_logging"]
