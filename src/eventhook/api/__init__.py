# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Public data model: hook definitions, cluster state and the error taxonomy.
"""

from .cluster import ClusterChangedEvent, ClusterState, DiscoveryNode, DiscoveryNodes, Metadata
from .errors import (
    CoordinatorStateError,
    EventHookError,
    HookStoreError,
    QueryTimingIssue,
    ScriptCompileError,
    ScriptError,
    ScriptExecutionError,
    StoreQueryFailed,
    StoreUnavailable,
    UnknownScriptLanguage,
)
from .hooks import ALL_EVENTS, HookDefinition, ScriptKind, resolve_script_kind

__all__ = [
    # hooks
    "ALL_EVENTS",
    "HookDefinition",
    "ScriptKind",
    "resolve_script_kind",
    # cluster
    "ClusterChangedEvent",
    "ClusterState",
    "DiscoveryNode",
    "DiscoveryNodes",
    "Metadata",
    # errors
    "EventHookError",
    "HookStoreError",
    "StoreUnavailable",
    "QueryTimingIssue",
    "StoreQueryFailed",
    "ScriptError",
    "ScriptCompileError",
    "ScriptExecutionError",
    "UnknownScriptLanguage",
    "CoordinatorStateError",
]
