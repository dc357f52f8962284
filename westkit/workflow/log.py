"""Logging configuration using loguru.

Intercepts stdlib logging so that asyncio, pydantic-settings and any other
library logging flows through loguru with a unified format.

Two formats: a terse ``level | message`` line for people watching a terminal,
and a detailed one (timestamp and call site) for DEBUG runs and for stderr
redirected to a file or CI log.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from loguru import logger

CONSOLE_FORMAT = "<level>{level: <7}</level> | <level>{message}</level>"
DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _is_terminal(sink: TextIO) -> bool:
    isatty = getattr(sink, "isatty", None)
    return bool(isatty and isatty())


def setup_logging(level: str = "INFO", *, sink: TextIO | None = None, detailed: bool | None = None) -> None:
    """Configure loguru as the sole logging sink.

    Call this once at process startup (before the first command runs).
    External-process output is logged at DEBUG, so ``WESTKIT_LOG_LEVEL=DEBUG``
    shows the full ``west``/``pip`` transcript.  ``detailed=None`` picks the
    console format only for an interactive terminal below DEBUG.
    """
    level = level.upper()
    sink = sink if sink is not None else sys.stderr
    if detailed is None:
        detailed = level == "DEBUG" or not _is_terminal(sink)

    logger.remove()
    logger.add(sink, level=level, format=DETAILED_FORMAT if detailed else CONSOLE_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    # asyncio logs every subprocess transport at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.debug("Logging initialised (level={}, detailed={})", level, detailed)
