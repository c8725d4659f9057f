"""Logging setup shared by the CLI and library entry points."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_LEVEL = logging.INFO


def setup_logger(
    name: str = "vocabmaster",
    level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Safe to call more than once: handlers are only attached the first time,
    later calls just adjust the level.

    Args:
        name: Logger name (the package root by default)
        level: Level name or number
        log_file: Optional path for a rotating log file

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = DEFAULT_LOG_LEVEL
    logger.setLevel(level)

    if getattr(logger, "_vocabmaster_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger._vocabmaster_configured = True  # type: ignore[attr-defined]
    return logger
