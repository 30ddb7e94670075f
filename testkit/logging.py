"""
testkit.logging: structured logs for harness-driven tests
==========================================================

Newline-delimited JSON (or a plain single-line format) for the harness and
the engine underneath it, with contextual fields that can be *bound* per test
or per acting user.

Quick start (in conftest.py)
----------------------------
    from testkit.logging import setup_logging, bind

    setup_logging()

    def pytest_runtest_setup(item):
        bind(test=item.name)

`TestEnv` binds ``user=<name>`` while a facade operation runs, so every engine
log line emitted during a transaction carries the acting identity.

Environment variables
---------------------
TESTKIT_LOG_LEVEL   : DEBUG|INFO|WARNING|ERROR (default: INFO)
TESTKIT_LOG_FORMAT  : json|plain (default: json)
TESTKIT_LOG_FILE    : path to a log file (in addition to stderr)
"""

from __future__ import annotations

import contextlib
import contextvars
import functools
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

__all__ = [
    "setup_logging",
    "get_logger",
    "bind",
    "unbind",
    "context",
    "current_context",
    "log_duration",
    "JsonFormatter",
    "PlainFormatter",
]

# ------------------------------------------------------------------------------
# Bound context
# ------------------------------------------------------------------------------

_CTX: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("testkit_log_ctx", default={})


def current_context() -> Dict[str, Any]:
    """A copy of the fields currently bound."""
    return dict(_CTX.get())


def bind(**fields: Any) -> None:
    """Bind fields into the log context; `None` values are ignored."""
    d = current_context()
    d.update({k: v for k, v in fields.items() if v is not None})
    _CTX.set(d)


def unbind(*keys: str) -> None:
    d = current_context()
    for k in keys:
        d.pop(k, None)
    _CTX.set(d)


@contextlib.contextmanager
def context(**fields: Any) -> Iterator[None]:
    """Temporarily bind fields; the previous context is restored on exit."""
    token = _CTX.set({**current_context(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _CTX.reset(token)


# ------------------------------------------------------------------------------
# Formatters
# ------------------------------------------------------------------------------


def _iso_utc(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


_STD_KEYS = set(
    logging.LogRecord("x", logging.INFO, __file__, 1, "m", (), None).__dict__
) | {"message", "ctx"}


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.ctx = current_context()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; extras and bound context are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        out: Dict[str, Any] = {
            "ts": _iso_utc(record.created),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        ctx = getattr(record, "ctx", None)
        if ctx:
            out["ctx"] = ctx
        for k, v in record.__dict__.items():
            if k not in _STD_KEYS and not k.startswith("_"):
                out[k] = v
        if record.exc_info:
            exc_type = record.exc_info[0]
            out["exc"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(record.exc_info[1]),
                "stack": self.formatException(record.exc_info),
            }
        return json.dumps(out, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Human-friendly single-line formatter."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = getattr(record, "ctx", None)
        ctx_str = " " + " ".join(f"{k}={v}" for k, v in ctx.items()) if ctx else ""
        line = f"{_iso_utc(record.created)} | {record.levelname:<8} | {record.name:<22} | {record.getMessage()}{ctx_str}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ------------------------------------------------------------------------------
# Setup
# ------------------------------------------------------------------------------

_configured = False


def setup_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    file: Optional[str] = None,
    *,
    force: bool = False,
) -> None:
    """
    Configure the `engine` and `testkit` loggers once per process.

    Parameters
    ----------
    level : defaults to $TESTKIT_LOG_LEVEL or "INFO".
    fmt   : "json" | "plain"; defaults to $TESTKIT_LOG_FORMAT or "json".
    file  : also write to this path (or $TESTKIT_LOG_FILE).
    force : reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return

    lvl_name = (level or os.getenv("TESTKIT_LOG_LEVEL") or "INFO").upper()
    fmt_name = (fmt or os.getenv("TESTKIT_LOG_FORMAT") or "json").lower()
    log_file = file or os.getenv("TESTKIT_LOG_FILE")
    lvl = getattr(logging, lvl_name, logging.INFO)
    formatter: logging.Formatter = PlainFormatter() if fmt_name == "plain" else JsonFormatter()

    handlers = [logging.StreamHandler(stream=sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for h in handlers:
        h.addFilter(_ContextFilter())
        h.setFormatter(formatter)

    for name in ("engine", "testkit"):
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            lg.removeHandler(h)
            h.close()
        for h in handlers:
            lg.addHandler(h)
        lg.setLevel(lvl)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ------------------------------------------------------------------------------
# Duration logging
# ------------------------------------------------------------------------------


def log_duration(event: str = "call", level: int = logging.DEBUG):
    """
    Decorator logging start/finish of a call with its wall time (ms).

        @log_duration("publish_package")
        def publish_package(...): ...
    """

    def _wrap(fn):
        log = get_logger(f"{fn.__module__}.{fn.__qualname__}")

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            log.log(level, "%s: start", event, extra={"event": event, "phase": "start"})
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                ms = (time.perf_counter() - t0) * 1000.0
                log.log(
                    level,
                    "%s: error after %.2fms: %s",
                    event,
                    ms,
                    e,
                    extra={"event": event, "phase": "error", "ms": round(ms, 3)},
                )
                raise
            ms = (time.perf_counter() - t0) * 1000.0
            log.log(level, "%s: finish in %.2fms", event, ms, extra={"event": event, "phase": "finish", "ms": round(ms, 3)})
            return result

        return wrapper

    return _wrap
