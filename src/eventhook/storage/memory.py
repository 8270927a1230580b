# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
In-memory HookStore.

Useful for embedding, local runs and tests. Mirrors the behaviours the
pipeline depends on in a real search backend:
  - searching a missing index raises IndexNotFoundError;
  - a read block raises ClusterBlockError;
  - an index that is created but not yet allocated raises SearchPhaseError;
  - sort is stable (ties keep insertion order), missing sort values go last.
"""

import itertools
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.log import get_logger
from .hooks import ClusterBlockError, IndexNotFoundError, SearchHit, SearchPhaseError, SearchResult


@dataclass
class _Doc:
    doc_id: str
    category: str
    source: dict[str, Any]
    seq: int


@dataclass
class _Index:
    ready: bool
    docs: dict[tuple[str, str], _Doc]


class InMemoryHookStore:
    """Document store keyed by (index, category, doc_id). Use from a single event loop."""

    def __init__(self) -> None:
        self._indices: dict[str, _Index] = {}
        self._seq = itertools.count()
        self._read_blocked = False
        self.log = get_logger("storage.memory")

    # ---- admin -----------------------------------------------------------

    def create_index(self, index: str, *, ready: bool = True) -> None:
        self._indices.setdefault(index, _Index(ready=ready, docs={}))

    def mark_ready(self, index: str, ready: bool = True) -> None:
        self._get(index).ready = ready

    def delete_index(self, index: str) -> None:
        self._indices.pop(index, None)

    def block_reads(self, blocked: bool = True) -> None:
        self._read_blocked = blocked

    def put(self, index: str, category: str, doc_id: str, source: Mapping[str, Any]) -> None:
        """Index a document. Creates the index on first write; replacing keeps the original position."""
        idx = self._indices.setdefault(index, _Index(ready=True, docs={}))
        key = (category, doc_id)
        prev = idx.docs.get(key)
        seq = prev.seq if prev else next(self._seq)
        idx.docs[key] = _Doc(doc_id=doc_id, category=category, source=dict(source), seq=seq)
        self.log.debug("store.put", event="eventhook.store.put", index=index, category=category, doc_id=doc_id)

    def delete(self, index: str, category: str, doc_id: str) -> bool:
        idx = self._indices.get(index)
        return bool(idx and idx.docs.pop((category, doc_id), None))

    # ---- HookStore -------------------------------------------------------

    async def index_exists(self, index: str) -> bool:
        if self._read_blocked:
            raise ClusterBlockError("cluster read block is active")
        return index in self._indices

    async def search(
        self,
        index: str,
        *,
        categories: Sequence[str],
        size: int,
        sort_field: str = "priority",
        ascending: bool = True,
    ) -> SearchResult:
        if self._read_blocked:
            raise ClusterBlockError("cluster read block is active")
        idx = self._get(index)
        if not idx.ready:
            raise SearchPhaseError(f"all shards failed for [{index}]")

        wanted = set(categories)
        matched = sorted((d for d in idx.docs.values() if d.category in wanted), key=lambda d: d.seq)

        present = [d for d in matched if _sort_value(d.source, sort_field) is not None]
        missing = [d for d in matched if _sort_value(d.source, sort_field) is None]
        present.sort(key=lambda d: _sort_value(d.source, sort_field), reverse=not ascending)

        ordered = present + missing
        hits = tuple(
            SearchHit(doc_id=d.doc_id, category=d.category, source=dict(d.source)) for d in ordered[: max(0, size)]
        )
        return SearchResult(total=len(matched), hits=hits)

    # ---- helpers ---------------------------------------------------------

    def _get(self, index: str) -> _Index:
        idx = self._indices.get(index)
        if idx is None:
            raise IndexNotFoundError(f"no such index [{index}]")
        return idx


def _sort_value(source: Mapping[str, Any], field_name: str) -> float | None:
    v = source.get(field_name)
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None
