from __future__ import annotations

import pytest

from eventhook.storage.hooks import ClusterBlockError, IndexNotFoundError, SearchPhaseError
from eventhook.storage.memory import InMemoryHookStore

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_search_orders_by_priority_stably_with_missing_last():
    s = InMemoryHookStore()
    s.put("ix", "t", "nop", {"lang": "rec", "script": "nop"})
    s.put("ix", "t", "b", {"priority": 2})
    s.put("ix", "all", "a", {"priority": 1})
    s.put("ix", "t", "c", {"priority": 2})
    s.put("ix", "other", "z", {"priority": 0})

    res = await s.search("ix", categories=["t", "all"], size=10)
    assert res.total == 4
    assert [h.doc_id for h in res.hits] == ["a", "b", "c", "nop"]


@pytest.mark.asyncio
async def test_search_caps_hits_but_reports_total():
    s = InMemoryHookStore()
    for i in range(5):
        s.put("ix", "t", f"h{i}", {"priority": i})
    res = await s.search("ix", categories=["t"], size=2)
    assert res.total == 5
    assert [h.doc_id for h in res.hits] == ["h0", "h1"]


@pytest.mark.asyncio
async def test_replacing_a_document_keeps_its_position():
    s = InMemoryHookStore()
    s.put("ix", "t", "first", {"priority": 1})
    s.put("ix", "t", "second", {"priority": 1})
    s.put("ix", "t", "first", {"priority": 1, "script": "v2"})
    res = await s.search("ix", categories=["t"], size=10)
    assert [h.doc_id for h in res.hits] == ["first", "second"]
    assert res.hits[0].source["script"] == "v2"


@pytest.mark.asyncio
async def test_failure_modes():
    s = InMemoryHookStore()
    assert await s.index_exists("ix") is False
    with pytest.raises(IndexNotFoundError):
        await s.search("ix", categories=["t"], size=1)

    s.create_index("ix", ready=False)
    assert await s.index_exists("ix") is True
    with pytest.raises(SearchPhaseError):
        await s.search("ix", categories=["t"], size=1)

    s.mark_ready("ix")
    s.block_reads()
    with pytest.raises(ClusterBlockError):
        await s.index_exists("ix")
    with pytest.raises(ClusterBlockError):
        await s.search("ix", categories=["t"], size=1)


def test_delete():
    s = InMemoryHookStore()
    s.put("ix", "t", "a", {})
    assert s.delete("ix", "t", "a") is True
    assert s.delete("ix", "t", "a") is False
    assert s.delete("missing", "t", "a") is False
