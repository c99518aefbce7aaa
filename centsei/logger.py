from __future__ import annotations

import logging
import sys

from loguru import logger

from centsei.settings import Settings, load_settings

_LOGGING_CONFIGURED = False

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | "
    "{message}"
)


class _InterceptHandler(logging.Handler):
    """Route stdlib records (uvicorn, fastapi) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(settings: Settings | None = None) -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    config = settings or load_settings()
    logger.remove()
    logger.add(
        sys.stdout,
        level=config.log_level,
        format=LOG_FORMAT,
        backtrace=True,
        diagnose=False,
    )

    intercept = _InterceptHandler()
    logging.getLogger().handlers = [intercept]
    logging.getLogger().setLevel(config.log_level)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [intercept]
        stdlib_logger.propagate = False

    _LOGGING_CONFIGURED = True
