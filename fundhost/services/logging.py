"""Logging configuration.

Dual output (stdout + optional file) with the level taken from FUNDHOST_LOG_LEVEL.
Default: INFO. Set WARNING for production, DEBUG for verbose output.
"""

import logging
import sys
from pathlib import Path

from fundhost.config import get_settings

# Map string level names to logging constants
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level() -> int:
    """Get logging level from settings.

    Returns:
        Logging level constant (default: INFO)
    """
    level_str = (get_settings().log_level or "INFO").upper()
    return LOG_LEVEL_MAP.get(level_str, logging.INFO)


def setup_logging(log_file: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_file: Optional log file path (defaults to FUNDHOST_LOG_FILE)

    Behavior:
        - Replaces existing root handlers so repeated calls do not duplicate output
        - stdout handler always, file handler when a path is configured
    """
    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    log_file = log_file or get_settings().log_file
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


__all__ = ["LOG_LEVEL_MAP", "get_log_level", "setup_logging"]
