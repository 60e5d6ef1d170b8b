"""Logging setup for the relay process.

Console output for the operator plus an optional rotating JSON log file.
"""

import json
import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "icy_relay.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Relay fields passed with ``extra=`` by the session log lines.
RELAY_FIELDS = ("client", "title")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with the listener and track as their own keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in RELAY_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", log_path: Optional[str] = None) -> logging.Logger:
    """Configure the ``icy_relay`` logger hierarchy.

    Args:
        level: Logging level name.
        log_path: Directory for the rotating JSON log file, console only if None.

    Returns:
        logging.Logger: The package root logger.
    """
    logger = logging.getLogger("icy_relay")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    if log_path:
        try:
            os.makedirs(log_path, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_path, LOG_FILE_NAME),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(JsonFormatter())
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create log file: {e}. Logging to console only.")

    return logger
