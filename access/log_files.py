"""Rotating file loggers shared by the activity and audit trails."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from access.access_config import ACCESS_SETTINGS


def file_logger(name: str, filename: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_dir = ACCESS_SETTINGS["LOG_DIR"]
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(log_dir, filename), maxBytes=2_000_000, backupCount=3
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger
