"""Centralized logging setup for the certificate number extractor.

Every module logs through a named logger; the root handler is installed
once, and chatty third-party loggers are capped so debug output stays
readable during region searches.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Pillow logs every decoded chunk at DEBUG
_NOISY_LOGGERS = ("PIL", "multipart")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a standard format.

    Calling it again after a handler is installed is a no-op.

    Args:
        level: Logging level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance, typically for ``__name__``."""
    return logging.getLogger(name)
