from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False, log_file: str | Path | None = None) -> logging.Handler:
    """Attach one handler to the ``folio`` logger.

    A log file is the only useful target while the reader owns the terminal;
    without one, records go to stderr through rich.
    """
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    logger = logging.getLogger("folio")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return handler
