"""
Structured JSON logging for the settlement engine.

Every record is one JSON line.  Lines emitted while a settlement scope is
open carry the scope's identifiers (company, employee, document, batch,
actor and correlation id), so a single grep on ``document_id`` returns a
document's whole history: creation, each fold and each status change.

Settlement values are logged as-is and rendered by the formatter:
Decimal amounts keep their centavos as strings, statuses and termination
types log their value, and component lines (frozen dataclasses) log as
objects.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Settlement scope
# ---------------------------------------------------------------------------

SETTLEMENT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "company_id",
    "employee_id",
    "document_id",
    "batch_id",
)

_FIELDS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"settlement_log_{name}", default=None)
    for name in SETTLEMENT_FIELDS
}


def _checked(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(fields) - set(SETTLEMENT_FIELDS))
    if unknown:
        raise TypeError(f"unknown settlement log fields: {', '.join(unknown)}")
    return fields


class LogContext:
    """Settlement identifiers attached to every log line of the current
    thread or task."""

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set settlement fields.  ``None`` values leave a field as it is."""
        for name, value in _checked(fields).items():
            if value is not None:
                _FIELDS[name].set(str(value))

    @classmethod
    def attach_document(cls, document: Any) -> None:
        """Add a loaded settlement document's identifiers to the scope.

        Accepts the ORM row or the DTO; both expose ``id``, ``employee_id``
        and ``company_id``.
        """
        cls.set(
            document_id=document.id,
            employee_id=document.employee_id,
            company_id=document.company_id,
        )

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return the fields that are set."""
        return {
            name: value
            for name, value in ((n, var.get()) for n, var in _FIELDS.items())
            if value is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _FIELDS.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> "_SettlementScope":
        """Open a settlement scope.

        Fields set inside the scope, including by ``attach_document``, are
        rolled back when it exits.
        """
        return _SettlementScope(_checked(fields))


class _SettlementScope:

    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, var in _FIELDS.items():
            value = self._fields.get(name)
            self._tokens.append(
                (var, var.set(var.get() if value is None else str(value)))
            )
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _SettlementJSONEncoder(json.JSONEncoder):
    """Render amounts, statuses, component lines and identifiers."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        # A log line is never lost to an unexpected extra.
        return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        payload.update(LogContext.get_all())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            # SettlementEngineError subclasses keep their context as attributes
            for k, v in vars(exc).items():
                if not k.startswith("_") and k not in ("args", "code"):
                    payload[f"exc_{k}"] = v
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_SettlementJSONEncoder)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "payroll_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the payroll_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the payroll_kernel logger hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
