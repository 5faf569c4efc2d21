"""Logging setup for the service process.

Console output goes through rich; the full log is written to a plain file.
The previous run's log file is kept next to it with an ``.old`` suffix.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def rotate_log(log_path: Path) -> Optional[Path]:
    """Move an existing log file aside to ``<name>.old``."""

    if not log_path.exists():
        return None
    old = log_path.with_name(log_path.name + ".old")
    os.replace(log_path, old)
    return old


def configure_logging(
    log_path: Optional[Path] = None,
    level: int = logging.INFO,
    *,
    console: Optional[Console] = None,
    rotate: bool = True,
) -> logging.Logger:
    """Install console and file handlers on the ``autobiographies`` logger.

    Args:
        log_path: Log file; console only when omitted
        level: Minimum level for both handlers
        console: Rich console to render to (stderr by default)
        rotate: Move an existing log file aside before opening a new one

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("autobiographies")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if log_path is not None:
        log_path = Path(log_path).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if rotate:
            rotate_log(log_path)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "rotate_log"]
