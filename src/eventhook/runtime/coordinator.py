# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Dispatch coordinator.

Subscribes to a ClusterService and turns every notification into a dispatch:

    cluster_changed(event) -> event type from event.source
    on_master()            -> "on_master"   (is_master flipped to True first)
    off_master()           -> "off_master"  (is_master flipped to False first)

Entry points are synchronous and return immediately. The context is built on
the calling thread; the pipeline itself (exists -> query -> submit each hook)
runs as a background task on the coordinator's event loop. Store errors end
the dispatch with a log line; hook errors are handled by the invoker. Nothing
is retried and nothing propagates back to the notification source.

State-change dispatches are gated by `hooks_enabled` and by the
`cluster.eventhook.enable` cluster setting, re-read on every notification.
Master transitions always dispatch.
"""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

from ..api.cluster import ClusterChangedEvent
from ..api.errors import CoordinatorStateError, QueryTimingIssue, StoreQueryFailed, StoreUnavailable
from ..core.config import DEFAULT_HOOK_INDEX, DEFAULT_MAX_HOOKS, SETTING_ENABLE, EventHookConfig, parse_bool
from ..core.log import get_logger, log_context
from ..core.utils import short_id
from ..observability.tracing import trace
from ..transport.cluster import ClusterService
from .context import DispatchContext, EventContextBuilder
from .event_type import EVENT_OFF_MASTER, EVENT_ON_MASTER, resolve_event_type
from .gateway import HookStoreGateway
from .invoker import HookInvoker
from .metrics import DispatchMetrics


@dataclass
class CoordinatorState:
    is_master: bool = False
    hook_index: str = DEFAULT_HOOK_INDEX
    max_hooks: int = DEFAULT_MAX_HOOKS
    hooks_enabled: bool = True

    @classmethod
    def from_config(cls, cfg: EventHookConfig) -> CoordinatorState:
        return cls(hook_index=cfg.hook_index, max_hooks=cfg.max_hooks, hooks_enabled=cfg.enabled)


class DispatchCoordinator:
    def __init__(
        self,
        *,
        cluster: ClusterService,
        gateway: HookStoreGateway,
        invoker: HookInvoker,
        contexts: EventContextBuilder,
        state: CoordinatorState | None = None,
        cfg: EventHookConfig | None = None,
        metrics: DispatchMetrics | None = None,
        logger: logging.LoggerAdapter | None = None,
    ) -> None:
        self.cluster = cluster
        self.gateway = gateway
        self.invoker = invoker
        self.contexts = contexts
        if state is None:
            state = CoordinatorState.from_config(cfg or EventHookConfig())
        self.state = state
        self.metrics = metrics
        self.log = logger or get_logger("runtime.coordinator")

        self._loop: asyncio.AbstractEventLoop | None = None
        self._bg: set[asyncio.Task] = set()
        self._running = False
        self._stopped = False

    # ---- lifecycle --------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Subscribe to state changes, then to master transitions."""
        if self._stopped:
            raise CoordinatorStateError("a stopped coordinator cannot be started again")
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self.contexts.bind_loop(self._loop)
        self._running = True
        self.cluster.add_listener(self)
        self.cluster.add_master_listener(self)
        self.log.info(
            "coordinator.started",
            event="eventhook.coordinator.start",
            index=self.state.hook_index,
            max_hooks=self.state.max_hooks,
        )

    async def stop(self) -> None:
        """Unsubscribe (master listener first). In-flight dispatches and hooks keep running."""
        if not self._running:
            self._stopped = True
            return
        self.cluster.remove_master_listener(self)
        self.cluster.remove_listener(self)
        self._running = False
        self._stopped = True
        self.log.info("coordinator.stopped", event="eventhook.coordinator.stop", in_flight=len(self._bg))

    async def drain(self) -> None:
        """Wait until no dispatch task and no hook execution is pending."""
        while self._bg or self.invoker.pending:
            if self._bg:
                await asyncio.gather(*list(self._bg), return_exceptions=True)
            await self.invoker.drain()

    def set_hooks_enabled(self, enabled: bool) -> None:
        self.state.hooks_enabled = bool(enabled)

    # ---- listener entry points -------------------------------------------

    def cluster_changed(self, event: ClusterChangedEvent) -> None:
        if not self._running:
            return
        if not self._hooks_enabled(event):
            self._dropped("disabled")
            return
        event_type = resolve_event_type(event.source)
        self.log.debug(
            "coordinator.cluster_changed",
            event="eventhook.coordinator.event",
            index=self.state.hook_index,
            event_type=event_type,
            source=event.source,
        )
        self._trigger("cluster_changed", event_type, event)

    def on_master(self) -> None:
        self.state.is_master = True
        self._trigger("on_master", EVENT_ON_MASTER, None)

    def off_master(self) -> None:
        self.state.is_master = False
        self._trigger("off_master", EVENT_OFF_MASTER, None)

    # ---- pipeline ---------------------------------------------------------

    def _hooks_enabled(self, event: ClusterChangedEvent) -> bool:
        if not self.state.hooks_enabled:
            return False
        raw = event.state.metadata.setting(SETTING_ENABLE)
        return True if raw is None else parse_bool(raw, True)

    def _trigger(self, trigger: str, event_type: str, event: ClusterChangedEvent | None) -> None:
        if not self._running:
            return
        ctx = self.contexts.build(self.state, event_type, event)
        if self.metrics:
            self.metrics.dispatches_total.labels(trigger=trigger).inc()
        self._submit(self._dispatch(ctx))

    @trace("eventhook.dispatch")
    async def _dispatch(self, ctx: DispatchContext) -> None:
        index = self.state.hook_index
        with log_context(dispatch_id=short_id(), event_type=ctx.event_type):
            try:
                if not await self.gateway.exists(index):
                    self.log.debug("dispatch.no_index", event="eventhook.dispatch.no_index", index=index)
                    self._dropped("index_missing")
                    return
                definitions = await self.gateway.query(index, ctx.event_type, self.state.max_hooks)
            except (StoreUnavailable, QueryTimingIssue) as e:
                self.log.debug("dispatch.store_not_ready", event="eventhook.dispatch.store", index=index, error=str(e))
                self._dropped("store_not_ready")
                return
            except StoreQueryFailed as e:
                self.log.error("dispatch.query_failed", event="eventhook.dispatch.store", index=index, exc_info=e)
                self._dropped("query_failed")
                return

            if not definitions:
                self._dropped("no_hooks")
                return
            if self.invoker.closed:
                self.log.debug("dispatch.stopped", event="eventhook.dispatch.stopped", hooks=len(definitions))
                self._dropped("stopped")
                return
            for definition in definitions:
                self.invoker.invoke(definition, ctx)
            self.log.debug("dispatch.submitted", event="eventhook.dispatch.submit", hooks=len(definitions))

    def _dropped(self, reason: str) -> None:
        if self.metrics:
            self.metrics.dispatch_dropped_total.labels(reason=reason).inc()

    def _submit(self, coro: Coroutine[Any, Any, None]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._spawn(coro)
        else:
            loop.call_soon_threadsafe(self._spawn, coro)

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str | None = None) -> None:
        t = asyncio.create_task(coro, name=name or "eventhook-dispatch")
        self._bg.add(t)

        def _done(task: asyncio.Task) -> None:
            self._bg.discard(task)
            if task.cancelled():
                return
            if exc := task.exception():
                self.log.error("coordinator.task.crashed", exc_info=exc)

        t.add_done_callback(_done)
