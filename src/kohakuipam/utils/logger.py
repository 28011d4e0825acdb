"""
Logging utilities for KohakuIPAM.

Thin wrapper around loguru so every module obtains its logger the same way:

    from kohakuipam.utils.logger import get_logger

    logger = get_logger(__name__)

configure_logging() is called once by entry points (CLI, embedding service)
to install the console sink and, optionally, a rotating file sink.
"""

import sys
import traceback

from loguru import logger as _logger

from kohakuipam.models.enums import LogLevel

_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)

# Default binding so records emitted before configure_logging() still format
_logger.configure(extra={"module": "kohakuipam"})


def get_logger(name: str):
    """Return a loguru logger bound to the given module name."""
    return _logger.bind(module=name)


def configure_logging(level: LogLevel | str = LogLevel.INFO, log_file: str = ""):
    """
    Install logging sinks.

    Args:
        level: LogLevel (or its string value) for all sinks.
        log_file: Optional path of a file sink; empty for console only.
    """
    level = LogLevel(level)
    loguru_level = _LEVEL_MAP[level]
    verbose = level == LogLevel.FULL

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=loguru_level,
        format=_FORMAT,
        backtrace=verbose,
        diagnose=verbose,
    )
    if log_file:
        _logger.add(
            log_file,
            level=loguru_level,
            format=_FORMAT,
            rotation="10 MB",
            retention=5,
            backtrace=verbose,
            diagnose=verbose,
        )


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback as a single string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
