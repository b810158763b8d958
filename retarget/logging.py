"""
retarget.logging
----------------

Structured logging for the estimator's outer layers (service, cache, CLI):
- one JSON object per line, or a compact text line on a terminal
- context fields (trace_id, component, network, algorithm) carried in a
  `contextvars` dict, so concurrent requests never share them
- `extra={...}` on a log call becomes structured fields

Usage
-----
    from retarget import logging as rlog

    rlog.configure(json=False, level="INFO")  # once at process start
    log = rlog.get_logger(__name__)

    with rlog.trace_scope():
        rlog.bind(component="cli", network="testnet")
        log.info("report ready", extra={"samples": 46})

The estimator core never logs.
"""

from __future__ import annotations

import datetime as _dt
import enum
import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional, TextIO

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_LOG_CONTEXT", default={})

# Shown in this order on text lines.
CONTEXT_KEYS = ("trace_id", "component", "network", "algorithm")

# Standard LogRecord attributes; everything else on a record came from `extra`.
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def context() -> Dict[str, Any]:
    """Copy of the active context fields."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **{k: _plain(v) for k, v in fields.items()}})


def unbind(*keys: str) -> None:
    _LOG_CONTEXT.set({k: v for k, v in _LOG_CONTEXT.get().items() if k not in keys})


def clear_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None) -> Iterator[str]:
    """Bind a trace_id (random when not given); restore the prior context on exit."""
    token = _LOG_CONTEXT.set(dict(_LOG_CONTEXT.get()))
    tid = trace_id or uuid.uuid4().hex[:12]
    try:
        bind(trace_id=tid)
        yield tid
    finally:
        _LOG_CONTEXT.reset(token)


def _plain(v: Any) -> Any:
    if isinstance(v, enum.Enum):
        return v.value
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    return str(v)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _plain(v)
        for k, v in record.__dict__.items()
        if k not in _RECORD_FIELDS and not k.startswith("_")
    }


def _timestamp() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _exc_text(record: logging.LogRecord) -> str:
    return "".join(traceback.format_exception(*record.exc_info)).rstrip()


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(context())
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = _exc_text(record)
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    """
    One line per record:
      2026-01-05T12:34:56.789+00:00 | INFO    | retarget.cli.estimate | trace_id=abc123 network=testnet samples=46 | report ready
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        fields = [f"{k}={ctx[k]}" for k in CONTEXT_KEYS if ctx.get(k) is not None]
        fields += [f"{k}={v}" for k, v in _extras(record).items() if k not in ctx]
        parts = [_timestamp(), f"{record.levelname:<7}", record.name]
        if fields:
            parts.append(" ".join(fields))
        parts.append(record.getMessage())
        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + _exc_text(record)
        return line


def configure(*, json: Optional[bool] = None, level: str | int = "INFO", stream: Optional[TextIO] = None) -> None:
    """
    Install a single console handler on the root logger.

    json=None picks the format from RETARGET_LOG_FORMAT (json|text), then
    falls back to text on a terminal and JSON otherwise.
    """
    stream = stream if stream is not None else sys.stderr
    lvl = _level(level)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter() if _use_json(json, stream) else TextFormatter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(lvl)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "retarget")


def _level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _use_json(flag: Optional[bool], stream: Any) -> bool:
    if flag is not None:
        return flag
    env = os.environ.get("RETARGET_LOG_FORMAT", "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    isatty = getattr(stream, "isatty", None)
    return not (callable(isatty) and isatty())


__all__ = [
    "configure",
    "get_logger",
    "JSONFormatter",
    "TextFormatter",
    "bind",
    "unbind",
    "clear_context",
    "context",
    "trace_scope",
]
