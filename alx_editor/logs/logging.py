"""Logging helpers shared across the editor."""
from __future__ import annotations

import logging
from pathlib import Path

from ..core.config import LOG_DIR, LOG_LEVEL, LOG_ROOT_NAME

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _root_logger() -> logging.Logger:
    logger = logging.getLogger(LOG_ROOT_NAME)
    if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        logger.addHandler(logging.NullHandler())
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Return a child of the editor's root logger.

    Library modules never configure output themselves; the root carries a
    NullHandler so importing the engine stays silent until an entrypoint
    calls enable_console_logging or enable_file_logging.
    """
    _root_logger()
    if name == LOG_ROOT_NAME or name.startswith(LOG_ROOT_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOG_ROOT_NAME}.{name}")


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


_console_handler: logging.Handler | None = None


def enable_console_logging(level: int | str | None = None) -> logging.Handler:
    """Attach (or replace) the console handler of the editor's root logger."""
    global _console_handler
    logger = _root_logger()
    if _console_handler is not None:
        logger.removeHandler(_console_handler)
    handler = logging.StreamHandler()
    _console_handler = handler
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(_resolve_level(level))
    return handler


def enable_file_logging(
    filename: str = "alx_editor.log",
    level: int | str | None = None,
    directory: Path | None = None,
) -> Path:
    """Attach a file handler under LOG_DIR (or ``directory``) and return the log path."""
    target_dir = Path(directory) if directory is not None else LOG_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / filename
    logger = _root_logger()
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path.resolve():
            return path
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(_resolve_level(level))
    return path


__all__ = [
    "get_logger",
    "enable_console_logging",
    "enable_file_logging",
]
