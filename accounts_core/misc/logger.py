"""
Accounts core library containing logging helper functionality
"""

import logging
from typing import Optional


def enforce_logger(logger: Optional[logging.Logger] = None, fallback: str = "accounts_core") -> logging.Logger:
    """
    Return the given logger or a named fallback logger if None was given

    :raises TypeError: if something else than a logger was given
    """

    if logger is None:
        return logging.getLogger(fallback)
    if not isinstance(logger, logging.Logger):
        raise TypeError(f"Expected 'logging.Logger', got {type(logger)}")
    return logger


class NoDebugFilter(logging.Filter):
    """
    Logging filter that drops DEBUG messages of the specified logger (and its children)

    Records of all other loggers pass, regardless of their level. This is
    used to silence chatty libraries like the multipart form parser.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if super().filter(record):
            return record.levelno > logging.DEBUG
        return True
