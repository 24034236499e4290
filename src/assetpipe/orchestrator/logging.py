from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

ROOT_LOGGER = "assetpipe"

# Libraries that log every request or filesystem event at INFO
NOISY_LOGGERS = ("watchdog", "livereload", "tornado.access", "werkzeug", "httpx", "httpcore")

_configured = False


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv("ASSETPIPE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    env_file = os.getenv("ASSETPIPE_LOG_FILE")
    if env_file:
        _attach_file_handler(logging.getLogger(ROOT_LOGGER), Path(env_file))
    _configured = True


def _attach_file_handler(logger: logging.Logger, log_file: Path) -> None:
    # One rotating file per logger tree
    if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def get_logger(name: str, log_file: Path | None = None) -> logging.Logger:
    """Logger under the ``assetpipe`` tree, e.g. ``tasks.styles`` → ``assetpipe.tasks.styles``."""
    _ensure_base_logger()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    logger = logging.getLogger(name)
    if log_file:
        _attach_file_handler(logger, log_file)
    return logger
