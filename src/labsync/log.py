"""Logging setup for labsync entry points.

Library modules only create module loggers; handlers are installed here by
the CLI or by the embedding application.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None,
                  console: Optional[Console] = None) -> logging.Logger:
    """Configure the ``labsync`` logger.

    Args:
        level: Log level name
        log_file: Optional file that receives plain-text records
        console: Rich console for the terminal handler (stderr by default)

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger("labsync")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(rich_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(file_handler)

    package_logger.propagate = False
    return package_logger
