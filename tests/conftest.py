# conftest.py
from __future__ import annotations

import os
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from eventhook.core.config import DEFAULT_HOOK_INDEX
from eventhook.core.log import (
    bind_context,
    configure_from_env,
    enable_stdout_logging,
    get_logger,
    log_context,
)
from eventhook.runtime.context import EventContextBuilder
from eventhook.runtime.coordinator import CoordinatorState, DispatchCoordinator
from eventhook.runtime.gateway import HookStoreGateway
from eventhook.runtime.invoker import HookInvoker
from eventhook.runtime.metrics import DispatchMetrics
from eventhook.scripting.python import PythonScriptEngine
from eventhook.scripting.service import ScriptService
from eventhook.transport.cluster import LocalClusterService
from tests.helpers import CountingStore, RecordingEngine, make_state


def pytest_configure(config):
    config.addinivalue_line("markers", "state(**fields): CoordinatorState overrides for the `coordinator` fixture")


def pytest_addoption(parser):
    parser.addoption(
        "--log-json",
        action="store_true",
        default=False,
        help="Emit eventhook logs in JSON format during tests",
    )


@pytest.fixture(scope="session", autouse=True)
def _configure_eventhook_logging(request):
    configure_from_env()
    prefer_json = request.config.getoption("--log-json")
    # human-readable stdout unless the env already attached a handler
    if os.getenv("EVENTHOOK_LOG_STDOUT", "").lower() not in ("1", "true", "yes", "on"):
        enable_stdout_logging(
            level="DEBUG",
            json_output=prefer_json,
            pretty=not prefer_json,
            route_errors_to_stderr=True,
        )
    bind_context(role="pytest")


@pytest.fixture(scope="session")
def session_run_id():
    return uuid.uuid4().hex[:8]


@pytest.fixture(autouse=True)
def _test_log_context(request, session_run_id):
    log = get_logger("test")
    with log_context(pytest_nodeid=request.node.nodeid, test=request.node.name, test_run=session_run_id):
        log.debug("pytest.test.start", event="pytest.test.start")
        yield


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    rep = outcome.get_result()
    if rep.when == "call":
        log = get_logger("test")
        with log_context(pytest_nodeid=item.nodeid, test=item.name):
            log.debug(
                "pytest.test.finish",
                event="pytest.test.finish",
                outcome=rep.outcome,
                duration=getattr(rep, "duration", None),
            )


@pytest.fixture
def tlog():
    return get_logger("test")


# ───────────────────────── Pipeline pieces ─────────────────────────


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return DispatchMetrics.create(registry)


@pytest.fixture
def recorder():
    return RecordingEngine()


@pytest.fixture
def scripts(recorder, tmp_path):
    return ScriptService([PythonScriptEngine(), recorder], scripts_dir=tmp_path)


@pytest.fixture
def store():
    s = CountingStore()
    s.create_index(DEFAULT_HOOK_INDEX)
    return s


@pytest.fixture
def cluster():
    return LocalClusterService(make_state())


@pytest.fixture
def executor():
    # one worker: completion order == submission order
    ex = ThreadPoolExecutor(max_workers=1, thread_name_prefix="test-script")
    yield ex
    ex.shutdown(wait=True)


@pytest.fixture
def invoker(scripts, executor, metrics):
    return HookInvoker(scripts, executor, metrics=metrics)


@pytest_asyncio.fixture
async def coordinator(request, cluster, store, invoker, metrics):
    m = request.node.get_closest_marker("state")
    state = CoordinatorState(**(m.kwargs if m else {}))
    coord = DispatchCoordinator(
        cluster=cluster,
        gateway=HookStoreGateway(store),
        invoker=invoker,
        contexts=EventContextBuilder(cluster=cluster, client=cluster),
        state=state,
        metrics=metrics,
    )
    await coord.start()
    try:
        yield coord
    finally:
        await coord.stop()
        await coord.drain()
