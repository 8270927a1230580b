# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Hook invoker.

Compiles and executes one hook on a worker thread. invoke() returns as soon as
the work is queued. The returned future never fails: compile and execute
errors are logged inside the worker, and a submission the executor refuses
(closed invoker, executor shut down) is logged on the loop and resolves to None.
"""

import asyncio
import contextvars
import logging
import time
from concurrent.futures import Executor
from typing import Any

from ..api.hooks import HookDefinition
from ..core.log import get_logger, log_context
from ..observability.tracing import trace
from ..scripting.service import ScriptService
from .context import DispatchContext
from .metrics import DispatchMetrics


class HookInvoker:
    def __init__(
        self,
        scripts: ScriptService,
        executor: Executor,
        *,
        metrics: DispatchMetrics | None = None,
        logger: logging.LoggerAdapter | None = None,
    ) -> None:
        self.scripts = scripts
        self.executor = executor
        self.metrics = metrics
        self.log = logger or get_logger("runtime.invoker")
        self._pending: set[asyncio.Future] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of submitted hook executions that have not finished yet."""
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Refuse further submissions. Already queued executions still run."""
        self._closed = True

    def invoke(self, definition: HookDefinition, context: DispatchContext) -> asyncio.Future:
        """Queue compile + execute of `definition`; must be called on the event loop."""
        loop = asyncio.get_running_loop()
        # the worker inherits the dispatch log context and current span
        ctx = contextvars.copy_context()
        try:
            if self._closed:
                raise RuntimeError("hook invoker is closed")
            fut = loop.run_in_executor(self.executor, ctx.run, self._run, definition, context)
        except RuntimeError as e:
            self._failed("submit", definition, e)
            done = loop.create_future()
            done.set_result(None)
            return done
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)
        if self.metrics:
            self.metrics.hooks_submitted_total.inc()
        return fut

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @trace("eventhook.hook.execute")
    def _run(self, definition: HookDefinition, context: DispatchContext) -> Any:
        started = time.perf_counter()
        with log_context(hook_id=definition.hook_id):
            try:
                try:
                    compiled = self.scripts.compile(definition.lang, definition.script, definition.script_kind)
                except Exception as e:
                    self._failed("compile", definition, e)
                    return None
                try:
                    result = self.scripts.execute(compiled, context.script_vars())
                except Exception as e:
                    self._failed("execute", definition, e)
                    return None
            finally:
                if self.metrics:
                    self.metrics.hook_duration_seconds.observe(time.perf_counter() - started)
            self.log.debug("hook.done", event="eventhook.hook.done", hook_id=definition.hook_id)
            return result

    def _failed(self, phase: str, definition: HookDefinition, exc: Exception) -> None:
        if self.metrics:
            self.metrics.hook_failures_total.labels(phase=phase).inc()
        self.log.error(
            "hook.failed",
            event="eventhook.hook.failed",
            phase=phase,
            lang=definition.lang,
            script=definition.script,
            script_kind=definition.script_kind.value,
            hook_id=definition.hook_id,
            exc_info=exc,
        )
