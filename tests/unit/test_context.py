from __future__ import annotations

import asyncio

import pytest

from eventhook.api.cluster import ClusterChangedEvent
from eventhook.runtime.context import EventContextBuilder
from eventhook.runtime.coordinator import CoordinatorState
from eventhook.transport.cluster import LocalClusterService
from tests.helpers import make_state, next_state

pytestmark = pytest.mark.unit


@pytest.fixture
def local_cluster():
    return LocalClusterService(make_state(node_ids=("n1", "n2"), persistent={"p": "1"}))


def test_build_without_loop_fails(local_cluster):
    builder = EventContextBuilder(cluster=local_cluster, client=local_cluster)
    with pytest.raises(RuntimeError):
        builder.build(CoordinatorState(), "on_master")


@pytest.mark.asyncio
async def test_is_master_is_captured_by_value(local_cluster):
    builder = EventContextBuilder(cluster=local_cluster, client=local_cluster, loop=asyncio.get_running_loop())
    state = CoordinatorState(is_master=True)
    ctx = builder.build(state, "on_master")
    state.is_master = False
    assert ctx.is_master is True
    assert ctx.script_vars()["is_master"] is True
    assert set(ctx.script_vars()) == {"event_type", "is_master", "event", "nodes", "cluster"}


@pytest.mark.asyncio
async def test_master_transition_facts_are_safe_defaults(local_cluster):
    builder = EventContextBuilder(cluster=local_cluster, client=local_cluster, loop=asyncio.get_running_loop())
    facts = builder.build(CoordinatorState(), "off_master").event
    assert not facts.has_event
    assert facts.source() == ""
    assert facts.state() is local_cluster.state()
    assert facts.previous_state() is local_cluster.state()
    assert facts.indices_created() == [] and facts.indices_deleted() == []
    assert not any(
        [
            facts.routing_table_changed(),
            facts.metadata_changed(),
            facts.blocks_changed(),
            facts.nodes_added(),
            facts.nodes_removed(),
            facts.nodes_changed(),
            facts.index_routing_table_changed("x"),
        ]
    )
    assert not facts.nodes_delta().has_changes()
    assert facts.local_node_master() is False


@pytest.mark.asyncio
async def test_event_facts_wrap_the_change_event(local_cluster):
    builder = EventContextBuilder(cluster=local_cluster, client=local_cluster, loop=asyncio.get_running_loop())
    prev = local_cluster.state()
    cur = next_state(prev, node_ids=("n1",), indices=("logs",))
    ev = ClusterChangedEvent(source="zen-disco-node_left", state=cur, previous_state=prev)
    facts = builder.build(CoordinatorState(), "zen_disco_node_left", ev).event
    assert facts.has_event
    assert facts.source() == "zen-disco-node_left"
    assert facts.indices_created() == ["logs"]
    assert facts.nodes_removed()
    assert facts.state() is cur


@pytest.mark.asyncio
async def test_accessors_bridge_from_worker_threads(local_cluster):
    loop = asyncio.get_running_loop()
    ctx = EventContextBuilder(cluster=local_cluster, client=local_cluster, loop=loop).build(
        CoordinatorState(), "on_master"
    )

    def hook_body():
        ids = sorted(n.node_id for n in ctx.nodes.node_info())
        acked = ctx.cluster.set_transient_setting("cluster.routing.allocation.enable", "none")
        return ids, acked, ctx.cluster.get_transient_setting("cluster.routing.allocation.enable")

    ids, acked, value = await loop.run_in_executor(None, hook_body)
    assert ids == ["n1", "n2"]
    assert acked is True
    assert value == "none"
    assert ctx.cluster.get_persistent_setting("p") == "1"
    assert ctx.cluster.local_node().node_id == "n1"


@pytest.mark.asyncio
async def test_blocking_accessors_refuse_the_loop_thread(local_cluster):
    ctx = EventContextBuilder(cluster=local_cluster, client=local_cluster, loop=asyncio.get_running_loop()).build(
        CoordinatorState(), "on_master"
    )
    with pytest.raises(RuntimeError):
        ctx.nodes.node_info()
    with pytest.raises(RuntimeError):
        ctx.cluster.set_persistent_setting("k", "v")
