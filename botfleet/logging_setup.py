"""Logging configuration for botfleet."""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "info", serialize: bool = False) -> None:
    """
    Replace loguru's default sink with one stderr sink.

    Args:
        level: Minimum level name (debug, info, warning, error).
        serialize: Emit JSON lines instead of the human format.
    """
    level = level.upper()
    if level == "WARN":
        level = "WARNING"

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )
