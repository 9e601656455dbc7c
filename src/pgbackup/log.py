"""Logging setup for backup runs."""
import logging
from typing import Optional

from .config import LOG_FORMAT

LOGGER_NAME = 'pgbackup'


def configure_logging(level: int = logging.INFO, filename: Optional[str] = None) -> logging.Logger:
    """Attach stream (and optionally file) handlers to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logfmt = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setFormatter(logfmt)
    logger.addHandler(ch)

    if filename:
        fh = logging.FileHandler(filename, encoding='utf-8')
        fh.setFormatter(logfmt)
        logger.addHandler(fh)

    return logger
