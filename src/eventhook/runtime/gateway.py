# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Hook store gateway.

Wraps a HookStore with the two calls the dispatch pipeline makes and maps
store exceptions onto the pipeline's error taxonomy:

    ClusterBlockError                   -> StoreUnavailable   (transient)
    SearchPhaseError, IndexNotFoundError -> QueryTimingIssue   (transient)
    anything else                       -> StoreQueryFailed   (unexpected)

Errors surface when the coroutine is awaited; nothing is retried here.
"""

from ..api.errors import QueryTimingIssue, StoreQueryFailed, StoreUnavailable
from ..api.hooks import ALL_EVENTS, HookDefinition
from ..core.log import get_logger
from ..storage.hooks import ClusterBlockError, HookStore, IndexNotFoundError, SearchPhaseError

PRIORITY_FIELD = "priority"


class HookStoreGateway:
    def __init__(self, store: HookStore) -> None:
        self.store = store
        self.log = get_logger("runtime.gateway")

    async def exists(self, index: str) -> bool:
        try:
            return await self.store.index_exists(index)
        except ClusterBlockError as e:
            raise StoreUnavailable(f"cluster is blocked while checking [{index}]", index=index) from e
        except Exception as e:
            raise StoreQueryFailed(f"failed to check if [{index}] exists", index=index) from e

    async def query(self, index: str, event_type: str, max_results: int) -> list[HookDefinition]:
        """
        Hooks bound to `event_type` or to "all", priority ascending, at most
        `max_results` of them. Documents that are not runnable are dropped.
        """
        categories = [event_type] if event_type == ALL_EVENTS else [event_type, ALL_EVENTS]
        try:
            result = await self.store.search(
                index,
                categories=categories,
                size=max_results,
                sort_field=PRIORITY_FIELD,
                ascending=True,
            )
        except ClusterBlockError as e:
            raise StoreUnavailable("cluster is still blocked", index=index, event_type=event_type) from e
        except (SearchPhaseError, IndexNotFoundError) as e:
            raise QueryTimingIssue(f"[{index}] is not available yet", index=index, event_type=event_type) from e
        except Exception as e:
            raise StoreQueryFailed(
                "failed to find scripts for an event hook", index=index, event_type=event_type
            ) from e

        seen: set[tuple[str, str]] = set()
        out: list[HookDefinition] = []
        for hit in result.hits[:max_results]:
            key = (hit.category, hit.doc_id)
            if key in seen:
                continue
            seen.add(key)
            definition = HookDefinition.from_source(hook_id=hit.doc_id, event_type=hit.category, source=hit.source)
            if definition is None:
                self.log.debug(
                    "gateway.hook.skipped",
                    event="eventhook.gateway.skip",
                    hook_id=hit.doc_id,
                    category=hit.category,
                )
                continue
            out.append(definition)

        self.log.debug(
            "gateway.query.done",
            event="eventhook.gateway.query",
            index=index,
            event_type=event_type,
            total=result.total,
            returned=len(out),
        )
        return out
