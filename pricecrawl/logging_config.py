"""Logging setup shared by the crawler, importer and CLI."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_DIR = os.getenv("PRICECRAWL_LOG_DIR", "logs")
LOG_FILE = os.path.join(LOG_DIR, "crawler.log")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MAX_LOG_BYTES = 1_000_000
LOG_BACKUPS = 3


def _build_handlers() -> list[logging.Handler]:
    os.makedirs(LOG_DIR, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [
        RotatingFileHandler(LOG_FILE, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(LOG_LEVEL)
    return handlers


def get_logger(name: str) -> logging.Logger:
    """Return *name*'s logger, attaching console and ``crawler.log`` output once."""

    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)
    if logger.handlers:
        return logger

    for handler in _build_handlers():
        logger.addHandler(handler)
    logger.propagate = False
    return logger
