"""Root logger setup for the CLI and server processes."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Attach a rich console handler (and optionally a file handler) to root.

    Safe to call more than once: handlers are only added if the root logger
    does not already carry one of the same type.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    existing = {type(handler) for handler in root_logger.handlers}
    if RichHandler not in existing:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        root_logger.addHandler(console_handler)

    if log_file and logging.FileHandler not in existing:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "apscheduler"):
        logging.getLogger(name).setLevel(level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(logging.getLevelName(level), logging.WARNING))
