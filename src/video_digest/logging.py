"""
Logging setup for video-digest.

Everything goes through the "video_digest" logger and its children
(video_digest.pipeline, video_digest.sender, ...). setup_logging() attaches:

- logs/app.log: every record at the configured level, 5MB x 7 files
- logs/error.log: ERROR and above only, 5MB x 3 files
- stderr (optional)

When the log directory cannot be created the service keeps running with
console output only.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

LOGGER_NAME = "video_digest"

DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
APP_LOG_BACKUPS = 7
ERROR_LOG_BACKUPS = 3

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%d/%m/%Y %H:%M:%S"

_configured: Optional[logging.Logger] = None


def _resolve_level(explicit: Optional[str], configured: Optional[str]) -> int:
    """Explicit argument, then $LOG_LEVEL, then config, then INFO."""
    name = (explicit or os.environ.get("LOG_LEVEL") or configured or DEFAULT_LOG_LEVEL).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _rotating_file(path: Path, level: int, max_bytes: int, backups: int,
                   formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        str(path),
        maxBytes=max_bytes,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handlers(log_dir: str, level: int, max_bytes: int,
                   formatter: logging.Formatter) -> List[logging.Handler]:
    """Build the app and error log handlers, or none if the dir is unusable."""
    directory = Path(log_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        app_log = _rotating_file(directory / "app.log", level, max_bytes, APP_LOG_BACKUPS, formatter)
    except OSError:
        return []

    try:
        error_log = _rotating_file(directory / "error.log", logging.ERROR, max_bytes,
                                   ERROR_LOG_BACKUPS, formatter)
    except OSError:
        app_log.close()
        return []

    return [app_log, error_log]


def setup_logging(
    config: Optional[Dict[str, Any]] = None,
    log_dir: Optional[str] = None,
    log_level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    console: bool = True,
) -> logging.Logger:
    """
    Configure the video-digest logger. Safe to call more than once.

    Args:
        config: Merged configuration; its "logging" section supplies
            "level", "dir" and "max_bytes" defaults
        log_dir: Directory for app.log and error.log
        log_level: Level name, wins over $LOG_LEVEL and the config
        max_bytes: Rotation size for both files
        console: Also write to stderr

    Returns:
        The configured "video_digest" logger
    """
    global _configured

    settings = (config or {}).get("logging", {})
    level = _resolve_level(log_level, settings.get("level"))

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = _file_handlers(
        log_dir or settings.get("dir") or DEFAULT_LOG_DIR,
        level,
        max_bytes or settings.get("max_bytes") or DEFAULT_MAX_BYTES,
        formatter,
    )
    if console:
        stream = logging.StreamHandler()
        stream.setLevel(level)
        stream.setFormatter(formatter)
        handlers.append(stream)

    for handler in handlers:
        logger.addHandler(handler)

    _configured = logger
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return the video-digest logger, or its child `name`.

    Before setup_logging() runs, records still reach stderr at INFO.
    """
    global _configured

    if _configured is None:
        logger = logging.getLogger(LOGGER_NAME)
        if not logger.handlers:
            fallback = logging.StreamHandler()
            fallback.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
            logger.addHandler(fallback)
            logger.setLevel(logging.INFO)
        _configured = logger

    return _configured.getChild(name) if name else _configured


def shutdown_logging() -> None:
    """Flush and detach every handler; used on process exit and in tests."""
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)
    _configured = None
