# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Per-dispatch hook context.

A DispatchContext is built synchronously on the notification thread and then
shared, read-only, by every hook of that dispatch. It carries:

  - `is_master`, copied by value when the context is built;
  - `event`, an EventFacts view over the triggering ClusterChangedEvent (or
    safe defaults for master transitions, which have no event);
  - `nodes` / `cluster`, accessors holding only the cluster service and client
    they need.

Building performs no remote calls. Accessor methods that need the cluster
client run on the script's worker thread and block on the event loop until
the call completes, so they must not be called from the loop itself.
"""

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from ..api.cluster import ClusterChangedEvent, ClusterState, DiscoveryNode, IndexMetadata, NodesDelta
from ..transport.cluster import ClusterClient, ClusterService

if TYPE_CHECKING:
    from .coordinator import CoordinatorState

__all__ = ["ClusterAccessor", "DispatchContext", "EventContextBuilder", "EventFacts", "NodesAccessor"]

_T = TypeVar("_T")


def _blocking(loop: asyncio.AbstractEventLoop, coro: Coroutine[Any, Any, _T]) -> _T:
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        coro.close()
        raise RuntimeError("cluster client calls from hook accessors must not run on the event loop thread")
    return asyncio.run_coroutine_threadsafe(coro, loop).result()


class EventFacts:
    """
    Read-only view of what triggered the dispatch.

    Without an originating event (on_master/off_master) every change flag is
    False, lists are empty and both states are the state current at build time.
    """

    __slots__ = ("_event", "_current")

    def __init__(self, event: ClusterChangedEvent | None, current: ClusterState) -> None:
        self._event = event
        self._current = current

    @property
    def has_event(self) -> bool:
        return self._event is not None

    def source(self) -> str:
        return self._event.source if self._event else ""

    def state(self) -> ClusterState:
        return self._event.state if self._event else self._current

    def previous_state(self) -> ClusterState:
        return self._event.previous_state if self._event else self.state()

    def routing_table_changed(self) -> bool:
        return self._event.routing_table_changed() if self._event else False

    def index_routing_table_changed(self, index: str) -> bool:
        return self._event.index_routing_table_changed(index) if self._event else False

    def indices_created(self) -> list[str]:
        return self._event.indices_created() if self._event else []

    def indices_deleted(self) -> list[str]:
        return self._event.indices_deleted() if self._event else []

    def metadata_changed(self) -> bool:
        return self._event.metadata_changed() if self._event else False

    def index_metadata_changed(self, current: IndexMetadata) -> bool:
        return self._event.index_metadata_changed(current) if self._event else False

    def blocks_changed(self) -> bool:
        return self._event.blocks_changed() if self._event else False

    def local_node_master(self) -> bool:
        if self._event:
            return self._event.local_node_master()
        return self.state().nodes.local_node_master()

    def nodes_delta(self) -> NodesDelta:
        if self._event:
            return self._event.nodes_delta()
        return self.state().nodes.delta(self.previous_state().nodes)

    def nodes_removed(self) -> bool:
        return self._event.nodes_removed() if self._event else False

    def nodes_added(self) -> bool:
        return self._event.nodes_added() if self._event else False

    def nodes_changed(self) -> bool:
        return self._event.nodes_changed() if self._event else False


@dataclass(frozen=True)
class NodesAccessor:
    client: ClusterClient
    loop: asyncio.AbstractEventLoop

    def node_info(self, *node_ids: str) -> list[DiscoveryNode]:
        """Nodes by id (all nodes when no id is given). Remote call."""
        return _blocking(self.loop, self.client.nodes_info(*node_ids))


@dataclass(frozen=True)
class ClusterAccessor:
    """Settings reads hit the live cluster state; writes go through the client."""

    cluster: ClusterService
    client: ClusterClient
    loop: asyncio.AbstractEventLoop

    def local_node(self) -> DiscoveryNode | None:
        return self.cluster.state().nodes.local_node()

    def get_persistent_setting(self, key: str) -> str | None:
        return self.cluster.state().metadata.persistent_settings.get(key)

    def set_persistent_setting(self, key: str, value: Any) -> bool:
        return _blocking(self.loop, self.client.update_settings(persistent={key: value}))

    def get_transient_setting(self, key: str) -> str | None:
        return self.cluster.state().metadata.transient_settings.get(key)

    def set_transient_setting(self, key: str, value: Any) -> bool:
        return _blocking(self.loop, self.client.update_settings(transient={key: value}))


@dataclass(frozen=True)
class DispatchContext:
    event_type: str
    is_master: bool
    event: EventFacts
    nodes: NodesAccessor
    cluster: ClusterAccessor

    def script_vars(self) -> dict[str, Any]:
        """Bind the context's capabilities to the names hook scripts use."""
        return {
            "event_type": self.event_type,
            "is_master": self.is_master,
            "event": self.event,
            "nodes": self.nodes,
            "cluster": self.cluster,
        }


class EventContextBuilder:
    def __init__(
        self,
        *,
        cluster: ClusterService,
        client: ClusterClient,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.cluster = cluster
        self.client = client
        self.loop = loop

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def build(
        self, state: CoordinatorState, event_type: str, event: ClusterChangedEvent | None = None
    ) -> DispatchContext:
        """Snapshot `state.is_master` and wrap `event` (None for master transitions)."""
        if self.loop is None:
            raise RuntimeError("EventContextBuilder has no event loop bound")
        current = event.state if event is not None else self.cluster.state()
        return DispatchContext(
            event_type=event_type,
            is_master=bool(state.is_master),
            event=EventFacts(event, current),
            nodes=NodesAccessor(client=self.client, loop=self.loop),
            cluster=ClusterAccessor(cluster=self.cluster, client=self.client, loop=self.loop),
        )
