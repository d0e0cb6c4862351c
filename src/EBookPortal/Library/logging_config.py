"""
Structured Logging Utilities

Centralizes logging setup for the library backend: a console handler for
operators running the CLI and an optional rotating JSON-lines file for
shipping audit/repair/cleanup events elsewhere. Secrets that end up in log
payloads (storage keys, database passwords) are masked before they are
written.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict

from .config import LoggingConfig

LIBRARY_LOGGER = "EBookPortal.Library"

_SENSITIVE_KEYS = {
    "authorization",
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "aws_secret_access_key",
    "service_role_key",
}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str) and "apikey" in value.lower():
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "book_id": getattr(record, "book_id", None),
            "stage": getattr(record, "stage", None),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            log_obj.update(record.extra_fields)
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """Configure console and optional JSON file handlers for the library.

    Handlers installed here are tagged, so calling ``setup_logging`` again
    replaces them instead of stacking duplicates.

    Args:
        config: Logging configuration (level, JSON file path, rotation size).

    Returns:
        The ``EBookPortal.Library`` logger.
    """
    logger = logging.getLogger(LIBRARY_LOGGER)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_library_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._library_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if config.json_file:
        log_path = Path(config.json_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=int(config.max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._library_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = True
    return logger


__all__ = ["setup_logging", "mask_sensitive_data", "JSONFormatter", "LIBRARY_LOGGER"]
