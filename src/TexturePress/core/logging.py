"""Logging setup for TexturePress runs."""

import logging
import logging.handlers
import os

logger = logging.getLogger("texture_press")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [T%(thread)d]: %(message)s"
# 10 MB max per log file, keep 3 rotated backups
_LOG_MAX_BYTES = 10 * 1024 * 1024
_LOG_BACKUP_COUNT = 3


def resolve_log_level(level: str) -> int:
    """Map a level name to its numeric value, falling back to INFO."""
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        logger.warning("Invalid log level '%s', defaulting to INFO", level)
        return logging.INFO
    return numeric_level


def setup_logging(level: str = "INFO", log_file: str = None):
    """Send run output to stderr and, when `log_file` is set, a rotating file.

    Replaces handlers installed earlier in the process, including the
    bootstrap handler the CLI installs before the config is loaded.
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=_LOG_MAX_BYTES, backupCount=_LOG_BACKUP_COUNT,
            encoding="utf-8",
        ))
    logging.basicConfig(
        level=resolve_log_level(level),
        format=_LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    if log_file:
        logger.debug("Logging to %s", os.path.abspath(log_file))
