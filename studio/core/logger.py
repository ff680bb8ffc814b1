"""Loguru configuration for the studio dashboard.

Console output is always on; a rotating file sink is added when
LOG_FILE is configured.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> {extra}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message} {extra}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace loguru's default sink with the studio sinks.

    Args:
        level: Minimum level for every sink
        log_file: Optional file path for a rotating, zipped sink
        rotation: Rotation trigger for the file sink (e.g., "10 MB", "1 day")
        retention: How long rotated files are kept (e.g., "7 days")
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.info("Logger initialized", level=level, log_file=log_file)


def setup_logger_from_settings() -> None:
    """Configure logging from LOG_LEVEL / LOG_FILE."""
    from studio.config.settings import settings

    setup_logger(level=settings.log_level, log_file=settings.log_file)
