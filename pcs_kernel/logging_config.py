"""
Structured JSON logging for the PCS entitlement engine.

Every record is one JSON line. Records emitted while an estimate is in
progress carry the claim and reference-set scope bound by the service,
so engine traces can be joined back to the claim and the rate year that
produced them without threading ids through the pure engines.

Money fields follow the engine convention: an extra whose name ends in
``_cents`` is logged as the integer it is, with a ``_usd`` companion for
people reading the stream.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from collections.abc import Mapping
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pcs_kernel.domain.values import format_usd

# ---------------------------------------------------------------------------
# Claim scope
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = (
    "correlation_id",
    "claim_id",
    "reference_set",
    "jtr_version",
)

_scope: ContextVar[Mapping[str, str]] = ContextVar("pcs_log_scope", default={})


def _checked(fields: Mapping[str, str | None]) -> dict[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context field(s): {sorted(unknown)}")
    return {name: value for name, value in fields.items() if value is not None}


class LogContext:
    """Claim scope attached to every record on the current thread or task.

    The scope is one immutable mapping per context, replaced wholesale on
    every change, so threads and asyncio tasks never see each other's
    claims.
    """

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Merge fields into the scope. None values leave a field unchanged."""
        _scope.set({**_scope.get(), **_checked(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_scope.get())

    @classmethod
    def clear(cls) -> None:
        _scope.set({})

    @classmethod
    def bind(cls, **fields: str | None) -> "_ScopedContext":
        """Context manager that merges fields on entry and restores on exit."""
        return _ScopedContext(_checked(fields))


class _ScopedContext:
    def __init__(self, fields: dict[str, str]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = _scope.set({**_scope.get(), **self._fields})
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _scope.reset(self._token)
            self._token = None


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    """Serialize engine values: Decimal rates, dates, enums and results."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


def _with_dollars(key: str, value: Any, payload: dict[str, Any]) -> None:
    payload[key] = value
    if key.endswith("_cents") and isinstance(value, int) and not isinstance(value, bool):
        payload.setdefault(f"{key[:-len('_cents')]}_usd", format_usd(value))


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line.

    Engine exceptions contribute their ``code`` and their structured
    attributes (the offending field, the missing rate key) under
    ``exc_details``.
    """

    def __init__(self, *, include_traceback: bool = True):
        super().__init__()
        self._include_traceback = include_traceback

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_scope.get())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                _with_dollars(key, val, payload)

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
                payload["exc_details"] = {
                    k: v for k, v in vars(exc).items() if not k.startswith("_") and k != "code"
                }
            if self._include_traceback:
                payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "pcs_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the pcs_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
    include_traceback: bool = True,
) -> None:
    """Configure the pcs_kernel logger hierarchy (idempotent).

    ``level`` may be a ``logging`` constant or its name (``"WARNING"``).
    """
    global _configured
    resolved = _resolve_level(level)
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(resolved)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter(include_traceback=include_traceback))
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
