"""
Loguru sink configuration for entry points
"""
import sys
from typing import Optional
from loguru import logger


LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | <level>{message}</level>"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace the default loguru handler

    Args:
        level: Minimum level for the console sink
        log_file: Optional file path; rotated daily, kept for two weeks
    """
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())

    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level="DEBUG",
            rotation="1 day",
            retention="14 days",
            colorize=False
        )
