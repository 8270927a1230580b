# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
DB-agnostic hook store interface and the in-memory implementation.
"""

from .hooks import ClusterBlockError, HookStore, IndexNotFoundError, SearchHit, SearchPhaseError, SearchResult, StoreError
from .memory import InMemoryHookStore

__all__ = [
    "StoreError",
    "IndexNotFoundError",
    "ClusterBlockError",
    "SearchPhaseError",
    "SearchHit",
    "SearchResult",
    "HookStore",
    "InMemoryHookStore",
]
