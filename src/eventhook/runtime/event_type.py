# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Event type keys.

Update-task sources are free text ("zen-disco-receive(from master [...])",
"cluster_update_settings", "Allocation Disabled (reason: x)"). Hooks are bound
to a normalised key derived from that text: the detail tail in parentheses or
brackets is dropped and separators become underscores.
"""

import re

EVENT_TYPE_UNKNOWN = "unknown"
EVENT_ON_MASTER = "on_master"
EVENT_OFF_MASTER = "off_master"

_DETAIL_TAIL = re.compile(r"[(\[].*", re.DOTALL)
_SEPARATORS = re.compile(r"[\s\-]+")


def resolve_event_type(raw: str | None) -> str:
    """
    Map a raw event description to its event type key.

    >>> resolve_event_type("Allocation Disabled (reason: x)")
    'Allocation_Disabled'
    >>> resolve_event_type("zen-disco: node left [n1]")
    'zen_disco:_node_left'
    >>> resolve_event_type(None)
    'unknown'
    """
    if not raw:
        return EVENT_TYPE_UNKNOWN
    key = _SEPARATORS.sub("_", _DETAIL_TAIL.sub("", raw).strip())
    return key or EVENT_TYPE_UNKNOWN
