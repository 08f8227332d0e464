"""
Loguru sink configuration shared by the API and the CLI.
"""
from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from config import get_settings

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def configure_logging(level: str | None = None, log_file: str | None = None, to_file: bool = True) -> None:
    """Replace loguru's default sink with a stderr sink and an optional rotating file."""
    settings = get_settings()
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if to_file and log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, format=FILE_FORMAT, rotation="10 MB", retention=5)
