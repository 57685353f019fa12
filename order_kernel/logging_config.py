"""
Structured JSON logging for the order batch pipeline.

Every record is one JSON object per line:

    {"ts": ..., "level": ..., "logger": ..., "message": "<event_name>",
     "job_name": ..., "job_execution_id": ..., "step_name": ..., <extra>}

Messages are event names (``chunk_committed``, ``job_execution_finished``);
the data travels in ``extra``.  Run fields come from LogContext, which the
launcher binds for the duration of a job and of each step.
"""

__all__ = [
    "LOG_LEVELS",
    "RUN_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import IO, Any
from uuid import UUID

LOG_LEVELS: Mapping[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

RUN_FIELDS = ("job_name", "job_execution_id", "step_name")

_LOGGER_PREFIX = "order_kernel"


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------

_run_context: ContextVar[Mapping[str, str]] = ContextVar("order_run_context", default={})


def _merged(updates: Mapping[str, Any]) -> dict[str, str]:
    unknown = set(updates) - set(RUN_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
    merged = dict(_run_context.get())
    merged.update({k: str(v) for k, v in updates.items() if v is not None})
    return merged


class LogContext:
    """Run-scoped log fields, isolated per thread and per task."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Merge non-None fields into the current context."""
        _run_context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_run_context.get())

    @staticmethod
    def clear() -> None:
        _run_context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields for the body of a ``with`` block, then restore."""
        token = _run_context.set(_merged(fields))
        try:
            yield
        finally:
            _run_context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # OrderBatchError subclasses keep their context as public attributes
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "code":
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``order_kernel`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``order_kernel`` hierarchy.

    Only the first call has any effect.  ``level`` is a logging constant or
    a name from LOG_LEVELS (case-insensitive).
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if isinstance(level, str):
        level = LOG_LEVELS.get(level.upper(), logging.INFO)

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
