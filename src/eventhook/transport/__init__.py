# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Notification sources and cluster admin clients.
"""

from .cluster import ClusterClient, ClusterService, LocalClusterService
from .kafka_source import KafkaClusterService

__all__ = [
    "ClusterClient",
    "ClusterService",
    "LocalClusterService",
    "KafkaClusterService",
]
