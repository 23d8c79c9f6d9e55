from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, MutableMapping
from uuid import uuid4


_CORRELATION_ID: ContextVar[str | None] = ContextVar("correlation_id", default=None)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS: Dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _structured_fields(record: logging.LogRecord) -> Dict[str, Any]:
    structured = getattr(record, "structured_data", None)
    if isinstance(structured, Mapping):
        return dict(structured)
    return {}


class JsonFormatter(logging.Formatter):
    """Serialize log records into single-line JSON for structured ingestion."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = _CORRELATION_ID.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id
        payload.update(_structured_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True, default=str)


class CompactFormatter(logging.Formatter):
    """One line per record: ``timestamp LEVEL message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        parts = [timestamp, f"{record.levelname:>5}", record.getMessage()]
        correlation_id = _CORRELATION_ID.get()
        if correlation_id:
            parts.append(f"correlation_id={correlation_id}")
        parts.extend(f"{key}={value}" for key, value in _structured_fields(record).items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class PrettyFormatter(logging.Formatter):
    """Multi-line human readable output, fields indented under the message."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        lines = [f"{timestamp} {record.levelname} {record.name}: {record.getMessage()}"]
        correlation_id = _CORRELATION_ID.get()
        if correlation_id:
            lines.append(f"    correlation_id: {correlation_id}")
        for key, value in _structured_fields(record).items():
            lines.append(f"    {key}: {value}")
        if record.exc_info:
            lines.append(self.formatException(record.exc_info))
        return "\n".join(lines)


_FORMATTERS: Dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "compact": CompactFormatter,
    "pretty": PrettyFormatter,
}


class StructuredAdapter(logging.LoggerAdapter):
    """Logger adapter that merges keyword extra fields into structured JSON."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra_payload: Dict[str, Any] = dict(self.extra or {})
        existing_extra = kwargs.get("extra")
        if isinstance(existing_extra, dict):
            structured = existing_extra.get("structured_data")
            if isinstance(structured, Mapping):
                extra_payload.update(dict(structured))
        else:
            existing_extra = {}
        existing_extra["structured_data"] = extra_payload
        kwargs["extra"] = existing_extra
        return msg, kwargs


_STRUCTURED_ATTR = "_structured_configured"


def resolve_level(level: str | int) -> int:
    """Map a configured level name (``trace`` .. ``error``) to a logging level."""

    if isinstance(level, int):
        return level
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown log level: {level}") from exc


def _build_handler(output: str) -> logging.Handler:
    if output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if output == "stderr":
        return logging.StreamHandler(sys.stderr)
    return logging.FileHandler(output, encoding="utf-8")


def configure_logging(
    *,
    level: str | int = "info",
    fmt: str = "compact",
    output: str = "stdout",
    force: bool = False,
) -> None:
    """Configure the root logger once (idempotent unless ``force`` is set).

    Args:
        level: ``trace``, ``debug``, ``info``, ``warn`` or ``error`` (or a
            numeric logging level).
        fmt: ``compact``, ``pretty`` or ``json``.
        output: ``stdout``, ``stderr`` or a path to append to.
        force: Replace a previous configuration.
    """
    root = logging.getLogger()
    if bool(getattr(root, _STRUCTURED_ATTR, False)) and not force:
        return
    try:
        formatter_cls = _FORMATTERS[fmt]
    except KeyError as exc:
        raise ValueError(f"Unknown log format: {fmt}") from exc

    handler = _build_handler(output)
    handler.setFormatter(formatter_cls())
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)
    root.setLevel(resolve_level(level))
    setattr(root, _STRUCTURED_ATTR, True)


def get_logger(name: str, **defaults: Any) -> StructuredAdapter:
    """Return a structured logger adapter injecting default structured fields."""

    logger = logging.getLogger(name)
    return StructuredAdapter(logger, defaults)


def set_correlation_id(value: str | None) -> None:
    """Set correlation id in context for subsequent log records."""

    _CORRELATION_ID.set(value)


def get_correlation_id() -> str | None:
    """Return current correlation id if any."""

    return _CORRELATION_ID.get()


def clear_correlation_id() -> None:
    _CORRELATION_ID.set(None)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    """Context manager to bind/unbind correlation id automatically."""

    cid = correlation_id or str(uuid4())
    token = _CORRELATION_ID.set(cid)
    try:
        yield cid
    finally:
        _CORRELATION_ID.reset(token)


__all__ = [
    "TRACE",
    "JsonFormatter",
    "CompactFormatter",
    "PrettyFormatter",
    "StructuredAdapter",
    "resolve_level",
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_context",
]
