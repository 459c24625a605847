"""Application-wide logging configuration."""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOGGING_INITIALIZED = False


def setup_logging(log_dir=None):
    """Configure root logging once: console plus a rotating file under data/logs."""

    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return

    log_dir = log_dir or Path(__file__).resolve().parent / "data" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=log_dir / "cineverse.log",
            maxBytes=2 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        ),
    ]

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=handlers,
    )
    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
    _LOGGING_INITIALIZED = True
