"""Logging setup.

Modules log through loguru with a bound ``module`` name. Library use leaves
loguru's default sink alone; the CLI calls ``setup_logging``.
"""
import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", serialize: bool = False) -> None:
    """Replace loguru's default sink with a single stderr sink.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        serialize: Emit JSON lines instead of formatted text
    """
    logger.remove()
    logger.configure(extra={"module": "tasktimer"})
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_FORMAT,
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )
