"""
Logging setup for permgate.

Library modules only create loggers (``logging.getLogger(__name__)``) and
never configure handlers. Applications and the CLI call ``setup_logger`` once
to route permgate records to a Rich console handler.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from permgate.config import LOG_LEVELS

ROOT_LOGGER = "permgate"


def setup_logger(
    level: str = "WARNING",
    console: Console | None = None,
    show_path: bool = False,
) -> logging.Logger:
    """
    Configure the permgate logger hierarchy.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console: Rich console to write to (stderr by default)
        show_path: Whether to show the emitting module path

    Returns:
        The configured ``permgate`` logger

    Raises:
        ValueError: If the level name is not recognized
    """
    level_upper = level.upper()
    if level_upper not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {level}. "
            f"Must be one of: {', '.join(LOG_LEVELS)}"
        )

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level_upper))

    # Prevent duplicate handlers
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=show_path,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger
