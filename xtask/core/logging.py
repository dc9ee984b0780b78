"""
Logging setup shared by the CLI entry points
"""
import sys
from typing import Optional

from loguru import logger

from xtask.core.config import Settings


VERBOSE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(verbose: bool = False, settings: Optional[Settings] = None):
    """Setup logging configuration"""
    logger.remove()  # Remove default handler

    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=VERBOSE_FORMAT)
    else:
        level = settings.logging.level if settings else "INFO"
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if settings and settings.logging.file:
        logger.add(
            settings.logging.file,
            level="DEBUG" if verbose else settings.logging.level,
            format=FILE_FORMAT,
            rotation=settings.logging.max_size,
            retention=settings.logging.backup_count,
            encoding="utf-8"
        )
