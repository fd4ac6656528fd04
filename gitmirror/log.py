from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


PACKAGE_LOGGER = "gitmirror"
FILE_FORMAT = "[%(asctime)s %(levelname).3s][%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def daily_log_path(log_dir: Path, *, today: date | None = None, pid: int | None = None) -> Path:
    """``<log_dir>/gitmirror_<YYYYMMDD>_<pid>.log``: one file per process and day."""
    today = today or date.today()
    pid = os.getpid() if pid is None else pid
    return Path(log_dir) / f"gitmirror_{today:%Y%m%d}_{pid}.log"


def configure_logging(
    *,
    verbose: bool = False,
    log_dir: Path | None = None,
    console: Console | None = None,
) -> Path | None:
    """Attach console (and optionally file) handlers to the package logger.

    Returns the log file path when file logging is enabled. Calling it again
    replaces the handlers installed by a previous call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_gitmirror", False):
            logger.removeHandler(handler)
            handler.close()

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    console_handler.setLevel(level if verbose else logging.WARNING)
    console_handler._gitmirror = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)

    log_file: Path | None = None
    if log_dir is not None:
        log_file = daily_log_path(log_dir)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        file_handler._gitmirror = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    return log_file
