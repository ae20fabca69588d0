"""
Logging setup for the transfer sync process.

One stdout handler on the root logger, text or JSON lines.
"""

import json
import logging
import sys


TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Quieter third-party loggers; their INFO lines drown out per-page accounting
NOISY_LOGGERS = ("apscheduler", "aiohttp.access", "sqlalchemy.engine")


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Configure root logging.

    Args:
        level: Log level name
        log_format: "json" or "text"

    Returns:
        The transfer_sync package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("transfer_sync")
