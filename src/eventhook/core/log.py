from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
import threading
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar, Final

__all__ = [
    "bind_context",
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
    "set_level",
    "swallow",
    "warn_once",
]

# ---------- Context ----------

_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("eventhook_log_ctx", default=None)


def _ctx_copy() -> dict[str, Any]:
    ctx = _log_context.get()
    return dict(ctx) if ctx else {}


def bind_context(**fields: Any) -> None:
    """
    Merge fields into the current structured log context.
    Use from long-lived code (e.g., at service start).
    """
    ctx = _ctx_copy()
    ctx.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(ctx)


@contextmanager
def log_context(**fields: Any):
    """
    Temporarily add fields (dispatch_id, event_type, hook_id, ...) to the log context.
    Restores the previous context on exit.
    """
    token = _log_context.set({**_ctx_copy(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _log_context.reset(token)


# ---------- Formatters ----------

_STD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "asctime",
        "taskName",
    }
)

# Keys surfaced by HumanFormatter from the context.
_HUMAN_KEYS: Final[tuple[str, ...]] = ("dispatch_id", "event_type", "hook_id", "node_id")


def _iso_utc_ms(ts: float) -> str:
    dt = datetime.fromtimestamp(ts, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ts, level, logger, message, context fields,
    keyword extras and (optionally) the stack of an attached exception.
    """

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": _iso_utc_ms(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        msg = record.getMessage()
        if msg:
            out["message"] = msg

        ctx = _log_context.get()
        if ctx:
            out.update(ctx)

        for k, v in record.__dict__.items():
            if k in _STD_ATTRS or k in out:
                continue
            out[k] = v

        if record.exc_info:
            exc_type, exc, _tb = record.exc_info
            err = out.setdefault("error", {})
            err["type"] = exc_type.__name__ if exc_type else "Exception"
            err["message"] = str(exc) if exc else None
            if self.include_stack:
                err["stack"] = self.formatException(record.exc_info)
        elif record.exc_text:
            out.setdefault("error", {})["stack"] = record.exc_text

        return json.dumps(out, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Compact single-line formatter for local runs and tests."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        s = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        ctx = _log_context.get()
        if ctx:
            compact = {k: ctx[k] for k in _HUMAN_KEYS if ctx.get(k) is not None}
            if compact:
                s += "  [" + ", ".join(f"{k}={v}" for k, v in compact.items()) + "]"
        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)
        return s


# ---------- Filters / adapter ----------


class ContextFilter(logging.Filter):
    """Copy the current context onto the record so any handler can see it."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _log_context.get()
        if ctx:
            for k, v in ctx.items():
                record.__dict__.setdefault(k, v)
        return True


class _LevelRangeFilter(logging.Filter):
    def __init__(self, *, min_level: int = logging.NOTSET, max_level: int = logging.CRITICAL) -> None:
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return self.min_level <= record.levelno <= self.max_level


class _KwExtraAdapter(logging.LoggerAdapter):
    """
    Moves unknown keyword arguments into `extra`, so call sites can write
        log.info("dispatch.start", event="eventhook.dispatch.start", event_type=t)
    """

    _passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        if not isinstance(extra, dict):
            extra = {}
        for k in [k for k in kwargs if k not in self._passthrough]:
            v = kwargs.pop(k)
            key = f"field_{k}" if k in _STD_ATTRS else k
            extra.setdefault(key, v)
        kwargs["extra"] = extra
        return msg, kwargs


def _as_adapter(logger: logging.Logger | logging.LoggerAdapter) -> logging.LoggerAdapter:
    if isinstance(logger, logging.LoggerAdapter):
        return logger
    return _KwExtraAdapter(logger, {})


_WARN_ONCE_SEEN: set[str] = set()
_WARN_ONCE_LOCK = threading.Lock()


def warn_once(
    logger: logging.Logger | logging.LoggerAdapter,
    code: str,
    msg: str,
    *,
    level: int = logging.WARNING,
    **extra: Any,
) -> None:
    """Log `msg` only the first time `code` is seen in this process."""
    with _WARN_ONCE_LOCK:
        if code in _WARN_ONCE_SEEN:
            return
        _WARN_ONCE_SEEN.add(code)
    _as_adapter(logger).log(level, msg, code=code, **extra)


# ---------- Public configuration API ----------

_ROOT_LOGGER_NAME = "eventhook"
_STDOUT_HANDLER = "_eventhook_stdout_handler"
_STDERR_HANDLER = "_eventhook_stderr_handler"
_configured = False


def _truthy(v: str | None) -> bool:
    return (v or "").lower() in ("1", "true", "yes", "on")


def _level_no(level: int | str) -> int:
    if isinstance(level, int):
        return level
    lvl = logging.getLevelName(level.upper())
    if isinstance(lvl, str):
        raise ValueError(f"Invalid level name: {level!r}")
    return lvl


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """
    Return an adapter over `eventhook.<name>` that accepts keyword fields.
    Silent until a handler is attached (see enable_stdout_logging).
    """
    _bootstrap_minimal()
    base = logging.getLogger(_ROOT_LOGGER_NAME)
    return _KwExtraAdapter(base.getChild(name) if name else base, {})


def _bootstrap_minimal() -> None:
    global _configured
    if _configured:
        return
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    lg.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.NullHandler) for h in lg.handlers):
        lg.addHandler(logging.NullHandler())
    if not any(isinstance(f, ContextFilter) for f in lg.filters):
        lg.addFilter(ContextFilter())
    _configured = True


def set_level(level: int | str) -> None:
    logging.getLogger(_ROOT_LOGGER_NAME).setLevel(_level_no(level))


def enable_stdout_logging(
    *,
    level: int | str = logging.DEBUG,
    json_output: bool = True,
    include_stack: bool = False,
    pretty: bool = False,
    route_errors_to_stderr: bool = False,
) -> None:
    """
    Attach stream handlers. `pretty` wins over `json_output`.
    With `route_errors_to_stderr`, ERROR+ goes to stderr and the rest to stdout.
    """
    level = _level_no(level)
    _bootstrap_minimal()
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    disable_stdout_logging()

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    elif json_output:
        fmt = JsonFormatter(include_stack=include_stack)
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    out = logging.StreamHandler(sys.stdout)
    out.set_name(_STDOUT_HANDLER)
    out.setLevel(level)
    out.setFormatter(fmt)
    lg.addHandler(out)

    if route_errors_to_stderr:
        out.addFilter(_LevelRangeFilter(max_level=logging.WARNING))
        err = logging.StreamHandler(sys.stderr)
        err.set_name(_STDERR_HANDLER)
        err.setLevel(max(level, logging.ERROR))
        err.setFormatter(fmt)
        lg.addHandler(err)


def disable_stdout_logging() -> None:
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    for h in list(lg.handlers):
        if h.get_name() in (_STDOUT_HANDLER, _STDERR_HANDLER):
            lg.removeHandler(h)


def configure_from_env() -> None:
    """
    Honors:
      - EVENTHOOK_LOG_STDOUT=1 -> attach a stdout handler
      - EVENTHOOK_LOG_LEVEL=DEBUG|INFO|...
      - EVENTHOOK_LOG_PRETTY=1 -> human formatter instead of JSON
      - EVENTHOOK_LOG_STACK=1 -> include stacks in JSON logs
    """
    level = os.getenv("EVENTHOOK_LOG_LEVEL", "INFO")
    pretty = _truthy(os.getenv("EVENTHOOK_LOG_PRETTY"))

    _bootstrap_minimal()
    set_level(level)
    if _truthy(os.getenv("EVENTHOOK_LOG_STDOUT")):
        enable_stdout_logging(
            level=level,
            json_output=not pretty,
            include_stack=_truthy(os.getenv("EVENTHOOK_LOG_STACK")),
            pretty=pretty,
        )
    else:
        disable_stdout_logging()


# ---------- Exception swallowing with trace ----------


@contextmanager
def swallow(
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    level: int = logging.DEBUG,
    code: str,
    msg: str | None = None,
    extra: Mapping[str, Any] | None = None,
    expected: bool = True,
):
    """
    Replace `try/except: pass` with a structured log line.

        with swallow(logger=log, code="cluster.listener", msg="listener failed", level=logging.ERROR):
            listener.cluster_changed(event)
    """
    adapter = _as_adapter(logger or get_logger("swallow"))
    try:
        yield
    except Exception as e:
        payload: dict[str, Any] = {"code": code, "expected": expected}
        if extra:
            payload.update(extra)
        adapter.log(level, msg or "Suppressed exception", exc_info=e, **payload)


_bootstrap_minimal()
