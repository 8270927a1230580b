from __future__ import annotations

import inspect
import json
import logging

import pytest

from eventhook.core.log import JsonFormatter, get_logger, log_context, swallow, warn_once
from eventhook.observability.tracing import trace

pytestmark = pytest.mark.unit


def _record(msg: str, **extra) -> logging.LogRecord:
    rec = logging.LogRecord("eventhook.test", logging.INFO, __file__, 1, msg, None, None)
    rec.__dict__.update(extra)
    return rec


def test_json_formatter_merges_context_and_fields():
    with log_context(dispatch_id="d1", event_type="on_master"):
        line = JsonFormatter().format(_record("dispatch.submitted", hooks=2))
    out = json.loads(line)
    assert out["message"] == "dispatch.submitted"
    assert out["dispatch_id"] == "d1"
    assert out["event_type"] == "on_master"
    assert out["hooks"] == 2
    assert out["logger"] == "eventhook.test"


def test_log_context_is_restored():
    with log_context(hook_id="outer"):
        with log_context(hook_id="inner"):
            inner = json.loads(JsonFormatter().format(_record("x")))
        outer = json.loads(JsonFormatter().format(_record("x")))
    assert inner["hook_id"] == "inner"
    assert outer["hook_id"] == "outer"


def test_swallow_logs_instead_of_raising(caplog):
    caplog.set_level(logging.DEBUG, logger="eventhook")
    log = get_logger("test.swallow")
    with swallow(logger=log, code="test.boom", msg="boom suppressed", level=logging.WARNING):
        raise ValueError("boom")
    (rec,) = [r for r in caplog.records if r.getMessage() == "boom suppressed"]
    assert rec.code == "test.boom"
    assert rec.exc_info


def test_warn_once(caplog):
    caplog.set_level(logging.DEBUG, logger="eventhook")
    log = get_logger("test.once")
    for _ in range(3):
        warn_once(log, "test.warn_once.unique", "only once")
    assert sum(r.getMessage() == "only once" for r in caplog.records) == 1


def test_trace_wraps_sync_callables():
    @trace("test.sync")
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add.__name__ == "add"


@pytest.mark.asyncio
async def test_trace_wraps_async_callables():
    @trace("test.async")
    async def double(x):
        return x * 2

    assert await double(4) == 8
    assert inspect.iscoroutinefunction(double)
