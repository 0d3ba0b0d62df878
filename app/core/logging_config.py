"""
Loguru logging setup.

Configured once per process from settings: a console sink at LOG_LEVEL and,
when LOG_FILE is set, a rotating file sink.
"""

import sys
from typing import Any, Optional

from loguru import logger

from app.core.config import settings

_configured = False

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> | {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[module]}:{function}:{line} | {message}"


def add_sink(sink: Any, fmt: str, level: str, **options: Any) -> int:
    """Add a loguru sink whose tracebacks never show local variables (request params, passwords)."""
    return logger.add(sink, format=fmt, level=level, backtrace=False, diagnose=False, **options)


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Install the loguru sinks. Calling it again is a no-op."""
    global _configured
    if _configured:
        return

    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger.remove()
    logger.configure(extra={"module": "app"})
    add_sink(sys.stderr, CONSOLE_FORMAT, level)
    if log_file:
        add_sink(log_file, FILE_FORMAT, level, rotation="50 MB", retention="7 days", enqueue=True)

    _configured = True


def get_logger(name: Optional[str] = None):
    """Logger bound to the calling module's name."""
    return logger.bind(module=name or "app")
