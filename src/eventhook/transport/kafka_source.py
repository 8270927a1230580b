# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Kafka-fed notification source.

The cluster coordinator publishes every committed state to a topic:

    {"source": "zen-disco-node_left([n3])", "state": {...ClusterState...}}

This service consumes that topic, pins the local node id (each consumer is a
different node of the cluster) and republishes the states to its listeners via
LocalClusterService. Settings updates requested by hooks are produced to a
separate topic for the coordinator to apply; they are acknowledged once the
broker has the record.
"""

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import Any

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from pydantic import BaseModel, ConfigDict, ValidationError

from ..api.cluster import ClusterState, settings_to_str
from ..core.log import get_logger, swallow, warn_once
from ..core.utils import dumps, loads
from .cluster import LocalClusterService


class ClusterStateMessage(BaseModel):
    """Wire shape of one published cluster state."""

    model_config = ConfigDict(extra="ignore")

    source: str = ""
    state: ClusterState


class KafkaClusterService(LocalClusterService):
    def __init__(
        self,
        *,
        bootstrap: str,
        topic_state: str,
        topic_settings: str,
        local_node_id: str | None = None,
        group_id: str | None = None,
        initial: ClusterState | None = None,
    ) -> None:
        super().__init__(initial)
        self.bootstrap = bootstrap
        self.topic_state = topic_state
        self.topic_settings = topic_settings
        self.local_node_id = local_node_id
        # one group per node: every node must see every state
        self.group_id = group_id or f"eventhook.{local_node_id or uuid.uuid4().hex[:6]}"

        self._consumer: AIOKafkaConsumer | None = None
        self._producer: AIOKafkaProducer | None = None
        self._task: asyncio.Task | None = None
        self.log = get_logger("cluster.kafka")

    # ---- lifecycle --------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None:
            return
        self._producer = AIOKafkaProducer(bootstrap_servers=self.bootstrap, value_serializer=dumps)
        await self._producer.start()
        self._consumer = AIOKafkaConsumer(
            self.topic_state,
            bootstrap_servers=self.bootstrap,
            group_id=self.group_id,
            value_deserializer=loads,
            enable_auto_commit=True,
            auto_offset_reset="latest",
        )
        await self._consumer.start()
        self._task = asyncio.create_task(self._consume_loop(), name="cluster-state-consumer")
        self.log.info("cluster.kafka.started", event="eventhook.kafka.started", topic=self.topic_state)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._consumer is not None:
            with swallow(
                logger=self.log, code="cluster.kafka.consumer.stop", msg="consumer stop failed", level=logging.WARNING
            ):
                await self._consumer.stop()
            self._consumer = None
        if self._producer is not None:
            with swallow(
                logger=self.log, code="cluster.kafka.producer.stop", msg="producer stop failed", level=logging.WARNING
            ):
                await self._producer.stop()
            self._producer = None

    # ---- consumption ------------------------------------------------------

    async def _consume_loop(self) -> None:
        assert self._consumer is not None
        try:
            while True:
                msg = await self._consumer.getone()
                self.handle_message(msg.value)
        except asyncio.CancelledError:
            return
        except Exception:
            self.log.error("cluster.kafka.loop.crashed", event="eventhook.kafka.crash", exc_info=True)

    def handle_message(self, payload: Any) -> bool:
        """Apply one state message. Returns False (and warns once) for invalid payloads."""
        try:
            msg = ClusterStateMessage.model_validate(payload)
        except ValidationError:
            warn_once(
                self.log,
                code="cluster.kafka.invalid_state",
                msg="Invalid cluster state message; skipping (suppressed next occurrences)",
            )
            return False

        state = msg.state
        if self.local_node_id and state.nodes.local_node_id != self.local_node_id:
            nodes = state.nodes.model_copy(update={"local_node_id": self.local_node_id})
            state = state.model_copy(update={"nodes": nodes})
        if state.version and state.version <= self.state().version:
            self.log.debug(
                "cluster.kafka.stale",
                event="eventhook.kafka.stale",
                version=state.version,
                current=self.state().version,
            )
            return False
        self.apply_state(msg.source, state)
        return True

    # ---- ClusterClient ----------------------------------------------------

    async def update_settings(
        self,
        *,
        persistent: Mapping[str, Any] | None = None,
        transient: Mapping[str, Any] | None = None,
    ) -> bool:
        if self._producer is None:
            raise RuntimeError("KafkaClusterService producer is not started")
        payload = {
            "node_id": self.local_node_id,
            "persistent": _wire_settings(persistent),
            "transient": _wire_settings(transient),
        }
        await self._producer.send_and_wait(self.topic_settings, payload, key=(self.local_node_id or "").encode())
        return True


def _wire_settings(values: Mapping[str, Any] | None) -> dict[str, str | None]:
    if not values:
        return {}
    kept = settings_to_str({k: v for k, v in values.items() if v is not None})
    return {**{k: None for k, v in values.items() if v is None}, **kept}
