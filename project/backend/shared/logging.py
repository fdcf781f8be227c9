"""
Structured logging.

JSON log records with the active video ID attached from a context variable.
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAMESPACE = "videostudio"

_video_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("video_id", default=None)

# Attributes present on every LogRecord; anything else came in through extra=
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {
    "message",
    "asctime",
    "video_id",
}

_configured = False


class VideoContextFilter(logging.Filter):
    """Attach the current video ID to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "video_id"):
            record.video_id = _video_id.get()
        return True


class JSONFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        video_id = getattr(record, "video_id", None)
        if video_id:
            payload["video_id"] = video_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: Optional[str] = None, force: bool = False) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        level: Log level name (defaults to settings.log_level)
        force: Replace existing handlers

    Returns:
        The package root logger
    """
    global _configured
    root = logging.getLogger(LOGGER_NAMESPACE)
    if _configured and not force:
        return root

    if level is None:
        try:
            from shared.config import settings
            level = settings.log_level
        except Exception:
            level = "INFO"

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(VideoContextFilter())
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a namespaced logger.

    Args:
        name: Module or component name

    Returns:
        Logger under the package namespace
    """
    configure_logging()
    if name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def set_video_id(video_id: Optional[str]) -> contextvars.Token:
    """Set the video ID attached to log records in the current context."""
    return _video_id.set(str(video_id) if video_id else None)


def get_video_id() -> Optional[str]:
    """Get the video ID of the current context."""
    return _video_id.get()
