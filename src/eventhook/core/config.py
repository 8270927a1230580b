from __future__ import annotations

"""
eventhook.core.config
=====================

Typed configuration for the event hook service.

Sources, lowest to highest precedence:
  1. dataclass defaults,
  2. an optional JSON file,
  3. environment variables,
  4. explicit overrides.

`from_settings()` additionally accepts the cluster-style keys
(`cluster.eventhook.index`, `cluster.eventhook.size`, `cluster.eventhook.enable`).
"""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_HOOK_INDEX = ".eventhook"
DEFAULT_MAX_HOOKS = 100

SETTING_INDEX = "cluster.eventhook.index"
SETTING_SIZE = "cluster.eventhook.size"
SETTING_ENABLE = "cluster.eventhook.enable"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def parse_bool(value: Any, default: bool) -> bool:
    """Lenient boolean parsing for env vars and cluster settings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return default


def _try_load_json(path: Path | None) -> dict[str, Any]:
    if not path or not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a JSON object")
    return data


@dataclass
class EventHookConfig:
    """Event hook service configuration."""

    # ---- Hook store
    hook_index: str = DEFAULT_HOOK_INDEX
    max_hooks: int = DEFAULT_MAX_HOOKS
    enabled: bool = True

    # ---- Script execution
    script_workers: int = 4
    scripts_dir: str | None = None

    # ---- Kafka notification source
    kafka_bootstrap: str = "kafka:9092"
    topic_cluster_state: str = "cluster.state.v1"
    topic_cluster_settings: str = "cluster.settings.v1"
    local_node_id: str | None = None

    # ---- Tracing
    otlp_endpoint: str | None = None
    service_name: str = "eventhook"

    def __post_init__(self) -> None:
        if not self.hook_index:
            raise ValueError("hook_index must be a non-empty string")
        self.max_hooks = int(self.max_hooks)
        if self.max_hooks <= 0:
            raise ValueError("max_hooks must be positive")
        self.script_workers = int(self.script_workers)
        if self.script_workers <= 0:
            raise ValueError("script_workers must be positive")
        self.enabled = parse_bool(self.enabled, True)

    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> EventHookConfig:
        """
        Load config from JSON file (if provided), then apply env and overrides.

        Env overrides:
          - EVENTHOOK_INDEX
          - EVENTHOOK_SIZE
          - EVENTHOOK_ENABLE
          - EVENTHOOK_SCRIPTS_DIR
          - KAFKA_BOOTSTRAP_SERVERS
        """
        data: dict[str, Any] = {}
        data.update(_try_load_json(Path(path) if path else None))

        env_map = {
            "EVENTHOOK_INDEX": "hook_index",
            "EVENTHOOK_SIZE": "max_hooks",
            "EVENTHOOK_ENABLE": "enabled",
            "EVENTHOOK_SCRIPTS_DIR": "scripts_dir",
            "KAFKA_BOOTSTRAP_SERVERS": "kafka_bootstrap",
        }
        for env, key in env_map.items():
            if os.getenv(env):
                data[key] = os.environ[env]

        if overrides:
            data.update(overrides)
        return cls(**data)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any], **kwargs: Any) -> EventHookConfig:
        """Build a config from cluster-style `cluster.eventhook.*` settings."""
        data: dict[str, Any] = dict(kwargs)
        if settings.get(SETTING_INDEX):
            data["hook_index"] = str(settings[SETTING_INDEX])
        if settings.get(SETTING_SIZE) is not None:
            data["max_hooks"] = int(settings[SETTING_SIZE])
        if SETTING_ENABLE in settings:
            data["enabled"] = parse_bool(settings[SETTING_ENABLE], True)
        return cls(**data)
