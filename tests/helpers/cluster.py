from __future__ import annotations

from collections.abc import Iterable, Mapping

from eventhook.api.cluster import ClusterState, DiscoveryNode, DiscoveryNodes, IndexMetadata, Metadata


def node(node_id: str) -> DiscoveryNode:
    return DiscoveryNode(node_id=node_id, name=f"node-{node_id}", host="127.0.0.1")


def make_state(
    *,
    node_ids: Iterable[str] = ("n1", "n2"),
    local: str | None = "n1",
    master: str | None = "n2",
    version: int = 1,
    indices: Iterable[str] = (),
    persistent: Mapping[str, str] | None = None,
    transient: Mapping[str, str] | None = None,
) -> ClusterState:
    """A small cluster where, by default, n1 is local and n2 is master."""
    return ClusterState(
        cluster_name="test-cluster",
        version=version,
        nodes=DiscoveryNodes(
            local_node_id=local,
            master_node_id=master,
            nodes={nid: node(nid) for nid in node_ids},
        ),
        metadata=Metadata(
            version=version,
            persistent_settings=dict(persistent or {}),
            transient_settings=dict(transient or {}),
            indices={name: IndexMetadata(name=name) for name in indices},
        ),
    )


def next_state(prev: ClusterState, **kwargs) -> ClusterState:
    """make_state() with the version bumped past `prev`."""
    kwargs.setdefault("version", prev.version + 1)
    return make_state(**kwargs)
