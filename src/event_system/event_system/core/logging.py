from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure application logging and return the package logger."""

    logger = logging.getLogger("event_system")
    logger.setLevel(level.upper())
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=10485760, backupCount=5)  # 10MB
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Silence noisy libraries
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("mysql.connector").setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger under the package logger (``event_system.<name>``)."""
    return logging.getLogger(f"event_system.{name}")
