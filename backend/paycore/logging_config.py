"""Key=value log formatting for the paycore logger hierarchy."""

__all__ = ["KeyValueFormatter", "configure_logging", "reset_logging"]

import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any

_LOGGER_PREFIX = "paycore"

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class KeyValueFormatter(logging.Formatter):
    """One line per record: ts, level, logger, msg, then any ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        parts = [
            f"ts={ts}",
            f"level={record.levelname}",
            f"logger={record.name}",
            f"msg={record.getMessage()!r}",
        ]
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS:
                parts.append(f"{key}={val}")
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            parts.append(f"exc_type={type(exc).__name__}")
            code = getattr(exc, "code", None)
            if code:
                parts.append(f"exc_code={code}")
        return " ".join(parts)


_configured = False
_lock = threading.Lock()


def configure_logging(*, level: int = logging.INFO, stream: Any = None) -> None:
    """Attach a single key=value stream handler to the ``paycore`` logger (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(KeyValueFormatter())
    root_logger.addHandler(handler)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
