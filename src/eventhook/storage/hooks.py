# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Hook store interface (DB-agnostic).

The hook store is a document index. Each document has an id, a category (the
event type it is bound to) and a JSON body. The pipeline needs exactly two
operations: check that the index exists, and search it by category with a
numeric sort and a result-size bound.

Implementations may sit on a search engine, a document DB, or memory. They
signal failures with the exceptions below; `HookStoreGateway` maps those onto
the pipeline's error taxonomy.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "ClusterBlockError",
    "HookStore",
    "IndexNotFoundError",
    "SearchHit",
    "SearchPhaseError",
    "SearchResult",
    "StoreError",
]


class StoreError(RuntimeError):
    """Base error for hook store operations."""


class IndexNotFoundError(StoreError):
    """The requested index does not exist."""


class ClusterBlockError(StoreError):
    """Reads are blocked cluster-wide or for this index."""


class SearchPhaseError(StoreError):
    """The search could not run on any shard copy (e.g., index not yet allocated)."""


@dataclass(frozen=True)
class SearchHit:
    """
    One matching document.

    Attributes:
        doc_id: Document id within the index.
        category: Document category (event type or "all").
        source: Document body.
    """

    doc_id: str
    category: str
    source: Mapping[str, Any]


@dataclass(frozen=True)
class SearchResult:
    """`total` counts every match; `hits` holds at most `size` of them."""

    total: int
    hits: Sequence[SearchHit] = field(default_factory=tuple)


@runtime_checkable
class HookStore(Protocol):
    async def index_exists(self, index: str) -> bool: ...

    async def search(
        self,
        index: str,
        *,
        categories: Sequence[str],
        size: int,
        sort_field: str = "priority",
        ascending: bool = True,
    ) -> SearchResult:
        """
        Return documents whose category is any of `categories`, ordered by
        `sort_field` (documents without the field go last; ties keep store
        order), capped at `size`.

        Raises:
            IndexNotFoundError, ClusterBlockError, SearchPhaseError, StoreError
        """
