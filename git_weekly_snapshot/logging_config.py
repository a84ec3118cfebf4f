"""Logging configuration with rich formatting for terminal output."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Configure logging with a rich handler on stderr.

    Args:
        verbose: Enable DEBUG level logging (includes every API request)
        quiet: Suppress all but ERROR level logging

    Returns:
        The git_weekly_snapshot package logger
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_path=verbose,
    )
    logging.basicConfig(
        level=logging.WARNING, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True
    )

    logger = logging.getLogger("git_weekly_snapshot")
    logger.setLevel(level)
    return logger
