from __future__ import annotations

"""
Event hook service: wires the dispatch pipeline around injected collaborators.

    svc = EventHookService(cfg=cfg, cluster=cluster, client=cluster, store=store)
    await svc.start()
    ...
    await svc.stop(wait=True)

`cluster` delivers notifications, `client` backs the node/settings accessors
hook scripts see, `store` holds hook documents. LocalClusterService and
KafkaClusterService implement both the cluster and the client side.
"""

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from typing import Any

from prometheus_client import CollectorRegistry

from .core.config import EventHookConfig
from .core.log import bind_context, get_logger, swallow
from .observability.tracing import setup_tracing
from .runtime.context import EventContextBuilder
from .runtime.coordinator import CoordinatorState, DispatchCoordinator
from .runtime.gateway import HookStoreGateway
from .runtime.invoker import HookInvoker
from .runtime.metrics import DispatchMetrics
from .scripting.python import PythonScriptEngine
from .scripting.service import ScriptService
from .storage.hooks import HookStore
from .transport.cluster import ClusterClient, ClusterService
from .transport.kafka_source import KafkaClusterService


class EventHookService:
    def __init__(
        self,
        *,
        cluster: ClusterService,
        client: ClusterClient,
        store: HookStore,
        cfg: EventHookConfig | None = None,
        scripts: ScriptService | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.cfg = copy.deepcopy(cfg) if cfg is not None else EventHookConfig.load()
        self.cluster = cluster
        self.client = client
        self.store = store
        self.scripts = scripts or ScriptService([PythonScriptEngine()], scripts_dir=self.cfg.scripts_dir)
        self.metrics = DispatchMetrics.create(registry)

        self.executor = ThreadPoolExecutor(max_workers=self.cfg.script_workers, thread_name_prefix="eventhook-script")
        self.gateway = HookStoreGateway(store)
        self.invoker = HookInvoker(self.scripts, self.executor, metrics=self.metrics)
        self.contexts = EventContextBuilder(cluster=cluster, client=client)
        self.coordinator = DispatchCoordinator(
            cluster=cluster,
            gateway=self.gateway,
            invoker=self.invoker,
            contexts=self.contexts,
            state=CoordinatorState.from_config(self.cfg),
            metrics=self.metrics,
        )

        self.log = get_logger("service")
        if self.cfg.local_node_id:
            bind_context(node_id=self.cfg.local_node_id)

    @classmethod
    def with_kafka(
        cls,
        *,
        store: HookStore,
        cfg: EventHookConfig | None = None,
        **kwargs: Any,
    ) -> EventHookService:
        """Service fed by the Kafka cluster-state topic; settings updates go back over Kafka."""
        cfg = cfg or EventHookConfig.load()
        source = KafkaClusterService(
            bootstrap=cfg.kafka_bootstrap,
            topic_state=cfg.topic_cluster_state,
            topic_settings=cfg.topic_cluster_settings,
            local_node_id=cfg.local_node_id,
        )
        return cls(cluster=source, client=source, store=store, cfg=cfg, **kwargs)

    # ---- lifecycle

    async def start(self) -> None:
        self.log.debug("service.start", event="eventhook.service.start", cfg=asdict(self.cfg))
        if self.cfg.otlp_endpoint:
            setup_tracing(service_name=self.cfg.service_name, otlp_endpoint=self.cfg.otlp_endpoint)
        start = getattr(self.cluster, "start", None)
        if start is not None:
            await start()
        await self.coordinator.start()
        self.log.info("service.started", event="eventhook.service.started", index=self.cfg.hook_index)

    async def stop(self, *, wait: bool = False) -> None:
        """
        Stop the coordinator, then the notification source.

        With `wait=True` in-flight dispatches and hooks finish first. Otherwise
        they are left to complete on their own; queued hooks are never cancelled.
        """
        await self.coordinator.stop()
        if wait:
            await self.coordinator.drain()
        stop = getattr(self.cluster, "stop", None)
        if stop is not None:
            with swallow(
                logger=self.log, code="service.source_stop", msg="source stop failed", level=logging.ERROR, expected=False
            ):
                await stop()
        self.invoker.close()
        self.executor.shutdown(wait=False, cancel_futures=False)
        self.log.info("service.stopped", event="eventhook.service.stopped")
