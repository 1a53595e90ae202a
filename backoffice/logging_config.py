"""
Back-office Console - Structured Logging
========================================
JSON log lines for the console's own process, tagged with the page, query
and Streamlit session they belong to.

- ``JsonFormatter``: one JSON object per line (default outside debug mode)
- ``ConsoleFormatter``: short coloured lines for local development
- ``LogContext``: contextvars for page / query / session
- ``log_event`` / ``log_error`` / ``PerformanceTracker`` helpers

Environment:
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR (default INFO)
    LOG_FORMAT  json | console (default: console in debug mode, else json)

Usage:
    from backoffice.logging_config import configure_logging, log_event

    configure_logging()
    log_event("panel_opened", page="product_items", target_id="prod_123")
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import date, datetime, timezone
from typing import Any

from backoffice.config import get_settings

# =============================================================================
# Context
# =============================================================================

_CONTEXT_FIELDS = ("page", "query", "session_id")
_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"backoffice_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Which page, query and session the current code runs for."""

    @classmethod
    def set_page(cls, page: str | None) -> None:
        _context["page"].set(page)

    @classmethod
    def get_page(cls) -> str | None:
        return _context["page"].get()

    @classmethod
    def set_query(cls, query: str | None) -> None:
        _context["query"].set(query)

    @classmethod
    def get_query(cls) -> str | None:
        return _context["query"].get()

    @classmethod
    def set_session_id(cls, session_id: str | None) -> None:
        _context["session_id"].set(session_id)

    @classmethod
    def get_session_id(cls) -> str | None:
        return _context["session_id"].get()

    @classmethod
    def clear(cls) -> None:
        for var in _context.values():
            var.set(None)

    @classmethod
    def get_all(cls) -> dict[str, Any]:
        return {name: var.get() for name, var in _context.items()}


# =============================================================================
# Formatters
# =============================================================================

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}


def _to_json(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return str(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, *, service_name: str = "backoffice", environment: str = "production") -> None:
        super().__init__()
        self.service_name = service_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "service": self.service_name,
            "env": self.environment,
            "src": f"{record.module}:{record.lineno}",
        }
        payload.update({k: v for k, v in LogContext.get_all().items() if v is not None})
        payload.update(_extra_fields(record))
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            payload["exc"] = {
                "type": exc_type.__name__,
                "msg": str(exc),
                "trace": "".join(traceback.format_exception(exc_type, exc, tb)),
            }
        return json.dumps(payload, default=_to_json, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """``12:00:01 WARNING [product_items] backoffice.query.cache: msg key=value``"""

    _COLOURS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    _RESET = "\033[0m"

    def __init__(self, *, colour: bool = True) -> None:
        super().__init__()
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<7}"
        if self.colour:
            level = f"{self._COLOURS.get(record.levelno, '')}{level}{self._RESET}"
        page = LogContext.get_page() or "-"
        line = f"{when} {level} [{page}] {record.name}: {record.getMessage()}"
        extras = _extra_fields(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Setup
# =============================================================================

_configured = False


def _level_from(value: str | int | None) -> int:
    if value is None:
        value = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(value, int):
        return value
    resolved = getattr(logging, value.upper(), None)
    return resolved if isinstance(resolved, int) else logging.INFO


def _wants_json(log_format: str | None) -> bool:
    choice = (log_format or os.environ.get("LOG_FORMAT", "")).lower()
    if choice in ("json", "console"):
        return choice == "json"
    return not get_settings().debug_mode


def configure_logging(
    *,
    level: str | int | None = None,
    service_name: str = "backoffice",
    environment: str = "production",
    log_format: str | None = None,
) -> None:
    """
    Install the console's stdout handler on the root logger.

    Safe to call on every Streamlit rerun: the handler installed by a
    previous call is replaced, handlers added by others are left alone.
    """
    global _configured

    resolved = _level_from(level)
    root = logging.getLogger()
    root.setLevel(resolved)
    for existing in [h for h in root.handlers if getattr(h, "_backoffice", False)]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler._backoffice = True  # type: ignore[attr-defined]
    if _wants_json(log_format):
        handler.setFormatter(JsonFormatter(service_name=service_name, environment=environment))
    else:
        handler.setFormatter(ConsoleFormatter(colour=sys.stdout.isatty()))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """``logging.getLogger`` that sets up output on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


# =============================================================================
# Helpers
# =============================================================================


def log_event(event_name: str, level: str | int = logging.INFO, **fields: Any) -> None:
    """Record a named UI event, e.g. ``log_event("panel_opened", target_id="p1")``."""
    logging.getLogger("backoffice.event").log(_level_from(level), event_name, extra=fields)


def log_error(event_name: str, exc: BaseException | None = None, **fields: Any) -> None:
    logger = logging.getLogger("backoffice.error")
    exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
    logger.error(event_name, exc_info=exc_info, extra=fields)


class PerformanceTracker:
    """
    Times a block and logs ``<operation>_completed`` (DEBUG) or
    ``<operation>_failed`` (WARNING) with ``duration_ms``.

        with PerformanceTracker("rpc_call", procedure="svc/ListProducts"):
            response = session.post(...)
    """

    def __init__(self, operation: str, **fields: Any) -> None:
        self.operation = operation
        self.fields = fields
        self._started: float | None = None
        self.elapsed_ms: float | None = None

    def __enter__(self) -> PerformanceTracker:
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self._started is None:
            return
        self.elapsed_ms = round((time.perf_counter() - self._started) * 1000, 2)
        fields = {**self.fields, "duration_ms": self.elapsed_ms}
        logger = logging.getLogger("backoffice.performance")
        if exc_type is None:
            logger.debug("%s_completed", self.operation, extra=fields)
        else:
            logger.warning("%s_failed", self.operation, extra={**fields, "error": str(exc)})
