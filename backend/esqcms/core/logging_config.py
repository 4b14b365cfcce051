"""
Structured JSON logging for the workflow service.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides how records under the ``esqcms`` namespace are rendered. Request-scoped
fields (request id, acting user) travel in contextvars so that the engine does
not have to thread them through every call.
"""
import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID

LOGGER_NAMESPACE = "esqcms"


class LogContext:
    """Async-safe holder for request-scoped log fields."""

    _request_id: ContextVar[Optional[str]] = ContextVar("log_request_id", default=None)
    _actor_id: ContextVar[Optional[str]] = ContextVar("log_actor_id", default=None)
    _actor_role: ContextVar[Optional[str]] = ContextVar("log_actor_role", default=None)

    _FIELD_NAMES = ("request_id", "actor_id", "actor_role")

    @classmethod
    def set(cls, **fields: Optional[str]) -> None:
        """Set context fields. Unknown names and None values are ignored."""
        for name, value in fields.items():
            var = getattr(cls, f"_{name}", None)
            if var is not None and value is not None:
                var.set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        ctx: dict[str, str] = {}
        for name in cls._FIELD_NAMES:
            value = getattr(cls, f"_{name}").get()
            if value is not None:
                ctx[name] = value
        return ctx

    @classmethod
    def clear(cls) -> None:
        for name in cls._FIELD_NAMES:
            getattr(cls, f"_{name}").set(None)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


_configured = False
_lock = threading.Lock()


def configure_logging(
    level: str = "INFO",
    handler: Optional[logging.Handler] = None,
) -> None:
    """Install the JSON formatter on the ``esqcms`` logger tree (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(level)
    root.propagate = False

    h = handler or logging.StreamHandler(sys.stderr)
    h.setFormatter(StructuredFormatter())
    root.addHandler(h)


def reset_logging() -> None:
    """Drop handlers installed by configure_logging. Used by tests."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(LOGGER_NAMESPACE)
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True
