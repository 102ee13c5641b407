# pyright: standard

"""snapper-sync: snapper_sync/__logger__.py
A common logger rendering through rich.
"""

import logging
import logging.handlers
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.Logger("snapper-sync", logging.INFO)

LOG_FORMAT = "%(message)s"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def create_logger(level="INFO", log_file=None) -> None:
    """Setup logging for console output and an optional log file.

    Args:
        level: Log level name or number applied to every handler.
        log_file: Optional path of a file receiving the same records.
    """
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(
        console=cons, show_path=False, rich_tracebacks=level == "DEBUG"
    )
    handlers: list[logging.Handler] = [rich_handler]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.WatchedFileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        handlers.append(file_handler)

    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level)
    for handler in handlers:
        logger.addHandler(handler)

    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        level=level,
        handlers=handlers,
        force=True,
    )
