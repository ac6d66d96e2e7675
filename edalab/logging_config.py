"""
Logging Configuration
Sets up the package logger for scripts, the CLI and the API.
"""
import logging
import sys
from typing import Optional, Union

from edalab.config import settings


def setup_logging(level: Optional[Union[int, str]] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configures the logger for the 'edalab' namespace.

    Args:
        level: Logging level (e.g. logging.DEBUG or "DEBUG"). Defaults to LOG_LEVEL.
        log_file: Optional path to save logs to a file.
    """
    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("edalab")
    logger.setLevel(level)

    # re-running a chapter in the same interpreter must not duplicate output
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
