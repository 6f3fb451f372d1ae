"""
Logging setup for the dispatch process.

Modules log through logging.getLogger(__name__); this module only wires
handlers onto the root logger once per process.
"""

from __future__ import annotations
from logging.handlers import RotatingFileHandler
from pathlib import Path
import logging

from .config import LogConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
MAX_BYTES = 10 * 1024 * 1024

# Marker attribute on handlers installed here
_HANDLER_TAG = "_dispatch_handler"


def error_log_path(file_path: str) -> Path:
    path = Path(file_path)
    return path.with_name(f"{path.stem}.error{path.suffix or '.log'}")


def configure_logging(config: LogConfig) -> logging.Logger:
    """
    Install console + rotating file handlers on the root logger.

    Calling it again replaces the handlers it installed earlier.
    """
    root = logging.getLogger()
    level = getattr(logging, config.level.upper(), logging.INFO)
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.StreamHandler()]

    if config.file_path:
        log_path = Path(config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        backups = max(config.max_files, 1)
        handlers.append(RotatingFileHandler(
            log_path, maxBytes=MAX_BYTES, backupCount=backups, encoding="utf-8"
        ))
        error_handler = RotatingFileHandler(
            error_log_path(config.file_path), maxBytes=MAX_BYTES, backupCount=backups,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, True)
        root.addHandler(handler)

    return root
