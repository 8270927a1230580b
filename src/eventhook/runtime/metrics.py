# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Low-cardinality Prometheus metrics for the dispatch pipeline.

Labels stay conservative (trigger, reason, phase); event types and hook ids
are never used as labels. Pass a private CollectorRegistry to keep several
services (or tests) in one process apart.
"""

from dataclasses import dataclass
from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


@dataclass
class DispatchMetrics:
    dispatches_total: Any
    dispatch_dropped_total: Any
    hooks_submitted_total: Any
    hook_failures_total: Any
    hook_duration_seconds: Any

    @classmethod
    def create(cls, registry: CollectorRegistry | None = None) -> DispatchMetrics:
        reg = registry if registry is not None else REGISTRY
        return cls(
            dispatches_total=Counter(
                "eventhook_dispatches_total", "Dispatches started", ["trigger"], registry=reg
            ),
            dispatch_dropped_total=Counter(
                "eventhook_dispatch_dropped_total", "Dispatches that ran no hooks", ["reason"], registry=reg
            ),
            hooks_submitted_total=Counter(
                "eventhook_hooks_submitted_total", "Hook executions submitted", registry=reg
            ),
            hook_failures_total=Counter(
                "eventhook_hook_failures_total", "Hook executions that failed", ["phase"], registry=reg
            ),
            hook_duration_seconds=Histogram(
                "eventhook_hook_duration_seconds",
                "Hook compile + execute time",
                buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
                registry=reg,
            ),
        )
