"""Logging utilities for Cell-Power."""

import logging
from rich.logging import RichHandler

def setup_logging(quiet: bool = False) -> None:
    """Configures the logging for the application.

    Args:
        quiet: If True, set log level to WARNING (show only warnings/errors).
               If False (default), set to DEBUG (verbose mode).
    """
    # Default to DEBUG (verbose), unless --quiet is specified
    level = logging.WARNING if quiet else logging.DEBUG

    # Only configure if not already configured (prevents multiple calls)
    if not logging.getLogger().hasHandlers():
        # Library text (cell and pin names) is logged verbatim, so markup stays off
        logging.basicConfig(
            level=level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(rich_tracebacks=True, markup=False)]
        )
    else:
        # Update level if already configured
        logging.getLogger().setLevel(level)
