# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Cluster state snapshots and change events.

These are the shapes the notification source delivers (and what a Kafka state
topic carries on the wire). Snapshots are immutable; a ClusterChangedEvent
compares two of them and answers the usual "what changed" questions.

Pydantic v2 models with `extra="ignore"` so newer coordinators can add fields.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "ClusterBlocks",
    "ClusterChangedEvent",
    "ClusterState",
    "DiscoveryNode",
    "DiscoveryNodes",
    "IndexMetadata",
    "IndexRoutingTable",
    "Metadata",
    "NodesDelta",
    "RoutingTable",
    "ShardRouting",
]

_CFG = ConfigDict(frozen=True, extra="ignore")


# --------------------------------------------------------------------------- #
# Nodes
# --------------------------------------------------------------------------- #


class DiscoveryNode(BaseModel):
    model_config = _CFG

    node_id: str
    name: str = ""
    host: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class NodesDelta:
    """Nodes added/removed between two snapshots."""

    added_nodes: tuple[DiscoveryNode, ...] = ()
    removed_nodes: tuple[DiscoveryNode, ...] = ()

    def added(self) -> bool:
        return bool(self.added_nodes)

    def removed(self) -> bool:
        return bool(self.removed_nodes)

    def has_changes(self) -> bool:
        return self.added() or self.removed()


class DiscoveryNodes(BaseModel):
    model_config = _CFG

    local_node_id: str | None = None
    master_node_id: str | None = None
    nodes: dict[str, DiscoveryNode] = Field(default_factory=dict)

    def local_node(self) -> DiscoveryNode | None:
        return self.nodes.get(self.local_node_id) if self.local_node_id else None

    def master_node(self) -> DiscoveryNode | None:
        return self.nodes.get(self.master_node_id) if self.master_node_id else None

    def local_node_master(self) -> bool:
        return self.local_node_id is not None and self.local_node_id == self.master_node_id

    def delta(self, previous: DiscoveryNodes) -> NodesDelta:
        added = tuple(n for nid, n in self.nodes.items() if nid not in previous.nodes)
        removed = tuple(n for nid, n in previous.nodes.items() if nid not in self.nodes)
        return NodesDelta(added_nodes=added, removed_nodes=removed)

    def __len__(self) -> int:
        return len(self.nodes)


# --------------------------------------------------------------------------- #
# Metadata / routing / blocks
# --------------------------------------------------------------------------- #


class IndexMetadata(BaseModel):
    model_config = _CFG

    name: str
    version: int = 1
    state: str = "open"
    settings: dict[str, str] = Field(default_factory=dict)


class Metadata(BaseModel):
    model_config = _CFG

    version: int = 0
    persistent_settings: dict[str, str] = Field(default_factory=dict)
    transient_settings: dict[str, str] = Field(default_factory=dict)
    indices: dict[str, IndexMetadata] = Field(default_factory=dict)

    def has_index(self, name: str) -> bool:
        return name in self.indices

    def setting(self, key: str) -> str | None:
        """Effective cluster setting: transient wins over persistent."""
        if key in self.transient_settings:
            return self.transient_settings[key]
        return self.persistent_settings.get(key)


class ShardRouting(BaseModel):
    model_config = _CFG

    shard: int
    node_id: str | None = None
    primary: bool = True
    state: str = "STARTED"


class IndexRoutingTable(BaseModel):
    model_config = _CFG

    index: str
    shards: tuple[ShardRouting, ...] = ()

    def active_primaries(self) -> bool:
        prim = [s for s in self.shards if s.primary]
        return bool(prim) and all(s.state == "STARTED" for s in prim)


class RoutingTable(BaseModel):
    model_config = _CFG

    version: int = 0
    indices: dict[str, IndexRoutingTable] = Field(default_factory=dict)

    def index(self, name: str) -> IndexRoutingTable | None:
        return self.indices.get(name)


class ClusterBlocks(BaseModel):
    model_config = _CFG

    global_blocks: frozenset[str] = frozenset()
    index_blocks: dict[str, frozenset[str]] = Field(default_factory=dict)

    def read_blocked(self, index: str | None = None) -> bool:
        if "read" in self.global_blocks:
            return True
        return index is not None and "read" in self.index_blocks.get(index, frozenset())


class ClusterState(BaseModel):
    model_config = _CFG

    cluster_name: str = "cluster"
    version: int = 0
    nodes: DiscoveryNodes = Field(default_factory=DiscoveryNodes)
    metadata: Metadata = Field(default_factory=Metadata)
    routing_table: RoutingTable = Field(default_factory=RoutingTable)
    blocks: ClusterBlocks = Field(default_factory=ClusterBlocks)

    def with_changes(self, **changes: Any) -> ClusterState:
        """Copy with a bumped version and the given top-level fields replaced."""
        changes.setdefault("version", self.version + 1)
        return self.model_copy(update=changes)


# --------------------------------------------------------------------------- #
# Change event
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class ClusterChangedEvent:
    """
    A transition from `previous_state` to `state`, labelled with the free-text
    `source` the coordinator attached to the update task.
    """

    source: str
    state: ClusterState
    previous_state: ClusterState
    _delta: NodesDelta = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_delta", self.state.nodes.delta(self.previous_state.nodes))

    def routing_table_changed(self) -> bool:
        return self.state.routing_table != self.previous_state.routing_table

    def index_routing_table_changed(self, index: str) -> bool:
        return self.state.routing_table.index(index) != self.previous_state.routing_table.index(index)

    def indices_created(self) -> list[str]:
        prev = self.previous_state.metadata.indices
        return [name for name in self.state.metadata.indices if name not in prev]

    def indices_deleted(self) -> list[str]:
        cur = self.state.metadata.indices
        return [name for name in self.previous_state.metadata.indices if name not in cur]

    def metadata_changed(self) -> bool:
        return self.state.metadata != self.previous_state.metadata

    def index_metadata_changed(self, current: IndexMetadata) -> bool:
        return self.previous_state.metadata.indices.get(current.name) != current

    def blocks_changed(self) -> bool:
        return self.state.blocks != self.previous_state.blocks

    def local_node_master(self) -> bool:
        return self.state.nodes.local_node_master()

    def nodes_delta(self) -> NodesDelta:
        return self._delta

    def nodes_removed(self) -> bool:
        return self._delta.removed()

    def nodes_added(self) -> bool:
        return self._delta.added()

    def nodes_changed(self) -> bool:
        return self._delta.has_changes()


def settings_to_str(values: Mapping[str, Any]) -> dict[str, str]:
    """Cluster settings are flat string maps; coerce values accordingly."""
    out: dict[str, str] = {}
    for k, v in values.items():
        if isinstance(v, bool):
            out[k] = "true" if v else "false"
        else:
            out[k] = str(v)
    return out
