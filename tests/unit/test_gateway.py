from __future__ import annotations

import logging

import pytest

from eventhook.api.errors import QueryTimingIssue, StoreQueryFailed, StoreUnavailable
from eventhook.runtime.gateway import HookStoreGateway
from tests.helpers import CountingStore, hook_doc

pytestmark = pytest.mark.unit

IX = ".eventhook"


@pytest.fixture
def gw_store():
    s = CountingStore()
    s.create_index(IX)
    return s


@pytest.mark.asyncio
async def test_query_matches_type_and_all_in_priority_order(gw_store):
    gw_store.put(IX, "node_left", "a", hook_doc("A", priority=2))
    gw_store.put(IX, "all", "b", hook_doc("B", priority=1))
    gw_store.put(IX, "node_left", "c", hook_doc("C", priority=3))
    gw_store.put(IX, "node_joined", "x", hook_doc("X", priority=0))

    defs = await HookStoreGateway(gw_store).query(IX, "node_left", 100)
    assert [d.script for d in defs] == ["B", "A", "C"]
    assert [d.event_type for d in defs] == ["all", "node_left", "node_left"]
    assert defs[0].matches_all


@pytest.mark.asyncio
async def test_query_caps_at_max_results(gw_store):
    for i, name in enumerate("ABCDE"):
        gw_store.put(IX, "t", name, hook_doc(name, priority=i))
    defs = await HookStoreGateway(gw_store).query(IX, "t", 2)
    assert [d.hook_id for d in defs] == ["A", "B"]


@pytest.mark.asyncio
async def test_query_no_matches_is_empty(gw_store):
    assert await HookStoreGateway(gw_store).query(IX, "t", 10) == []


@pytest.mark.asyncio
async def test_query_for_all_queries_the_wildcard_once(gw_store):
    gw_store.put(IX, "all", "a", hook_doc("A", priority=1))
    defs = await HookStoreGateway(gw_store).query(IX, "all", 10)
    assert [d.hook_id for d in defs] == ["a"]


@pytest.mark.asyncio
async def test_malformed_documents_are_skipped(gw_store, caplog):
    caplog.set_level(logging.DEBUG, logger="eventhook")
    gw_store.put(IX, "t", "ok", hook_doc("OK", priority=2))
    gw_store.put(IX, "t", "bad", {"priority": 1, "script": "no lang"})
    defs = await HookStoreGateway(gw_store).query(IX, "t", 10)
    assert [d.hook_id for d in defs] == ["ok"]
    assert any(r.getMessage() == "gateway.hook.skipped" for r in caplog.records)


@pytest.mark.asyncio
async def test_infinite_priority_keeps_the_hook(gw_store):
    gw_store.put(IX, "t", "ok", hook_doc("OK", priority=2))
    gw_store.put(IX, "t", "huge", {"lang": "rec", "script": "HUGE", "priority": float("inf")})
    defs = await HookStoreGateway(gw_store).query(IX, "t", 10)
    assert [d.hook_id for d in defs] == ["ok", "huge"]
    assert defs[1].priority is None


@pytest.mark.asyncio
async def test_exists(gw_store):
    gw = HookStoreGateway(gw_store)
    assert await gw.exists(IX) is True
    assert await gw.exists("other") is False


@pytest.mark.asyncio
async def test_read_block_is_store_unavailable(gw_store):
    gw_store.block_reads()
    gw = HookStoreGateway(gw_store)
    with pytest.raises(StoreUnavailable):
        await gw.exists(IX)
    with pytest.raises(StoreUnavailable) as ei:
        await gw.query(IX, "t", 10)
    assert ei.value.index == IX
    assert ei.value.event_type == "t"


@pytest.mark.asyncio
async def test_unallocated_or_missing_index_is_timing_issue(gw_store):
    gw = HookStoreGateway(gw_store)
    gw_store.create_index("young", ready=False)
    with pytest.raises(QueryTimingIssue):
        await gw.query("young", "t", 10)
    with pytest.raises(QueryTimingIssue):
        await gw.query("gone", "t", 10)


@pytest.mark.asyncio
async def test_anything_else_is_query_failed(gw_store):
    gw_store.search_error = ValueError("parse error")
    with pytest.raises(StoreQueryFailed) as ei:
        await HookStoreGateway(gw_store).query(IX, "t", 10)
    assert isinstance(ei.value.__cause__, ValueError)
