from __future__ import annotations

import logging
from logging import Formatter, Handler, StreamHandler
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from . import paths
from .utils.security import RedactingFilter

_configured = False

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def _resolve_level(level: Union[str, int, None]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        named = getattr(logging, level.upper(), None)
        if isinstance(named, int):
            return named
        try:
            return int(level)
        except ValueError:
            return logging.INFO
    return logging.INFO


def setup_app_logging(
    level: Union[str, int] = "INFO", log_file: Optional[Path] = None
) -> None:
    """Configure global application logging once; later calls only relevel."""
    global _configured
    resolved = _resolve_level(level)
    root = logging.getLogger()
    if not _configured:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        file_handler = _build_rotating_handler(log_file or paths.APP_LOG_FILE)
        stream_handler = StreamHandler()
        stream_handler.setFormatter(Formatter(LOG_FORMAT))
        stream_handler.addFilter(RedactingFilter())
        root.addHandler(file_handler)
        root.addHandler(stream_handler)
        _configured = True
    root.setLevel(resolved)
    for handler in root.handlers:
        handler.setLevel(resolved)


def _build_rotating_handler(path: Path) -> Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path,
        mode="a",
        encoding="utf-8",
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
    )
    handler.setFormatter(Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter())
    return handler


__all__ = ["setup_app_logging", "LOG_FORMAT"]
