# perfaudit/core/logging_setup.py
"""
Logging setup for perfaudit.

Every module logs through ``logging.getLogger(__name__)``; this configures the
``perfaudit`` parent logger once with a console handler.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: Optional[str] = None, name: str = "perfaudit") -> logging.Logger:
    """
    Configure the package logger with a console handler.

    Args:
        level: Log level name (default: INFO). Unknown names fall back to INFO.
        name: Logger name to configure.

    Returns:
        The configured logger.
    """
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates on reload
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger
