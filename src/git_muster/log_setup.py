"""Logging setup for git-muster.

Log records go to stderr through Rich so that reports on stdout stay
clean enough to pipe.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "git_muster"


def setup_logging(is_verbose: bool = False) -> None:
    """
    Set up logging for the package logger.

    Args:
        is_verbose: Log every git command (DEBUG) instead of warnings only

    """
    log_level = logging.DEBUG if is_verbose else logging.WARNING

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicate logs if called multiple times
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    console_handler = RichHandler(
        console=Console(stderr=True),
        level=log_level,
        rich_tracebacks=True,
        show_time=is_verbose,
        show_path=is_verbose,
    )
    package_logger.addHandler(console_handler)
