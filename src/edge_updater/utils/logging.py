"""Logger setup for the edge updater.

Each run writes to the console, which systemd forwards to the journal, and to
a rotating log file that survives reboots. The file is optional: a run must
still proceed when the log directory is unavailable, so that an update is
never blocked by logging.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from edge_updater.config import LOG_FILE

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _file_handler(
    log_file: str, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )


def setup_logger(
    name: str = "edge_updater",
    log_file: Optional[str] = LOG_FILE,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 3,
    level: int = logging.INFO,
) -> logging.Logger:
    """Attach console and rotating file handlers to the updater logger.

    Args:
        name: Logger name; service loggers are its ``name.<component>`` children
        log_file: Rotating log path, or None for console only
        max_bytes: Max size before rotation
        backup_count: Number of rotated files to keep
        level: Logging level for the updater and its handlers

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    for quiet in QUIET_LOGGERS:
        logging.getLogger(quiet).setLevel(max(level, logging.WARNING))

    # Avoid duplicate handlers if already configured
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is None:
        return logger

    try:
        file_handler = _file_handler(log_file, max_bytes, backup_count)
    except OSError as e:
        logger.warning(f"Cannot write log file {log_file}, logging to console only: {e}")
        return logger

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
