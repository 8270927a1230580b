# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Notification source and cluster admin client.

`ClusterService` is what the coordinator subscribes to: state-change events
and local-node-master transitions, each delivered exactly once and never
concurrently. `ClusterClient` is the admin surface hook scripts reach through
their context (node info, cluster settings updates).

`LocalClusterService` implements both in-process: feed it new states with
`apply_state()` and it diffs them, fans the event out to listeners and fires
master transitions when the local node gains or loses the master role.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from ..api.cluster import ClusterChangedEvent, ClusterState, DiscoveryNode, settings_to_str
from ..core.log import get_logger, swallow

__all__ = [
    "ClusterClient",
    "ClusterService",
    "ClusterStateListener",
    "LocalClusterService",
    "LocalNodeMasterListener",
]

SOURCE_UPDATE_SETTINGS = "cluster_update_settings"


@runtime_checkable
class ClusterStateListener(Protocol):
    def cluster_changed(self, event: ClusterChangedEvent) -> None: ...


@runtime_checkable
class LocalNodeMasterListener(Protocol):
    def on_master(self) -> None: ...
    def off_master(self) -> None: ...


@runtime_checkable
class ClusterService(Protocol):
    def state(self) -> ClusterState: ...
    def add_listener(self, listener: ClusterStateListener) -> None: ...
    def remove_listener(self, listener: ClusterStateListener) -> None: ...
    def add_master_listener(self, listener: LocalNodeMasterListener) -> None: ...
    def remove_master_listener(self, listener: LocalNodeMasterListener) -> None: ...


@runtime_checkable
class ClusterClient(Protocol):
    async def nodes_info(self, *node_ids: str) -> list[DiscoveryNode]:
        """Return info for the given nodes, or for all nodes when none are given."""

    async def update_settings(
        self,
        *,
        persistent: Mapping[str, Any] | None = None,
        transient: Mapping[str, Any] | None = None,
    ) -> bool:
        """Apply cluster settings; a None value removes the key. Returns True when acknowledged."""


class LocalClusterService:
    """In-process ClusterService + ClusterClient backed by an in-memory ClusterState."""

    def __init__(self, initial: ClusterState | None = None) -> None:
        self._state = initial or ClusterState()
        self._listeners: list[ClusterStateListener] = []
        self._master_listeners: list[LocalNodeMasterListener] = []
        self.log = get_logger("cluster")

    # ---- ClusterService ---------------------------------------------------

    def state(self) -> ClusterState:
        return self._state

    def add_listener(self, listener: ClusterStateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ClusterStateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_master_listener(self, listener: LocalNodeMasterListener) -> None:
        if listener not in self._master_listeners:
            self._master_listeners.append(listener)

    def remove_master_listener(self, listener: LocalNodeMasterListener) -> None:
        if listener in self._master_listeners:
            self._master_listeners.remove(listener)

    # ---- state publication -----------------------------------------------

    def apply_state(self, source: str, new_state: ClusterState) -> ClusterChangedEvent:
        """
        Make `new_state` current and notify listeners.

        State listeners are called in registration order, then master listeners
        if the local node's master role flipped. A failing listener is logged
        and does not stop the fan-out.
        """
        previous = self._state
        self._state = new_state
        event = ClusterChangedEvent(source=source, state=new_state, previous_state=previous)
        self.log.debug(
            "cluster.state.applied",
            event="eventhook.cluster.applied",
            source=source,
            version=new_state.version,
            listeners=len(self._listeners),
        )

        for listener in list(self._listeners):
            with swallow(logger=self.log, code="cluster.listener", msg="cluster listener failed", level=logging.ERROR):
                listener.cluster_changed(event)

        was_master = previous.nodes.local_node_master()
        is_master = new_state.nodes.local_node_master()
        if is_master != was_master:
            for ml in list(self._master_listeners):
                with swallow(
                    logger=self.log, code="cluster.master_listener", msg="master listener failed", level=logging.ERROR
                ):
                    if is_master:
                        ml.on_master()
                    else:
                        ml.off_master()
        return event

    # ---- ClusterClient ----------------------------------------------------

    async def nodes_info(self, *node_ids: str) -> list[DiscoveryNode]:
        nodes = self._state.nodes.nodes
        if not node_ids:
            return list(nodes.values())
        return [nodes[nid] for nid in node_ids if nid in nodes]

    async def update_settings(
        self,
        *,
        persistent: Mapping[str, Any] | None = None,
        transient: Mapping[str, Any] | None = None,
    ) -> bool:
        md = self._state.metadata
        new_md = md.model_copy(
            update={
                "version": md.version + 1,
                "persistent_settings": _merge(md.persistent_settings, persistent),
                "transient_settings": _merge(md.transient_settings, transient),
            }
        )
        self.apply_state(SOURCE_UPDATE_SETTINGS, self._state.with_changes(metadata=new_md))
        return True


def _merge(current: Mapping[str, str], updates: Mapping[str, Any] | None) -> dict[str, str]:
    out = dict(current)
    if not updates:
        return out
    removed = [k for k, v in updates.items() if v is None]
    for k in removed:
        out.pop(k, None)
    out.update(settings_to_str({k: v for k, v in updates.items() if v is not None}))
    return out
