# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Hook definitions as read from the hook store.

A hook document lives in the hook index under a category equal to the event
type it reacts to (or the wildcard category "all"):

    {"priority": 1, "lang": "python", "script": "...", "script_type": "inline"}

Definitions are immutable; they are created and edited by operators through
the store's own write path and only read here.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["ALL_EVENTS", "HookDefinition", "ScriptKind", "resolve_script_kind"]

ALL_EVENTS = "all"


class ScriptKind(str, Enum):
    """How `HookDefinition.script` is interpreted."""

    INLINE = "inline"
    STORED = "stored"
    FILE = "file"


def resolve_script_kind(raw: Any) -> ScriptKind:
    """
    Map the raw `script_type` field to a ScriptKind.

    Missing or unrecognised values mean INLINE; "indexed"/"stored" and "file"
    are matched case-insensitively.
    """
    if raw is None:
        return ScriptKind.INLINE
    if isinstance(raw, ScriptKind):
        return raw
    s = str(raw).strip().upper()
    if s in ("INDEXED", "STORED"):
        return ScriptKind.STORED
    if s == "FILE":
        return ScriptKind.FILE
    return ScriptKind.INLINE


class HookDefinition(BaseModel):
    """One hook document, validated."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    hook_id: str
    event_type: str
    priority: int | None = None
    lang: str = Field(min_length=1)
    script: str = Field(min_length=1)
    script_type: str | None = None

    @property
    def script_kind(self) -> ScriptKind:
        return resolve_script_kind(self.script_type)

    @property
    def matches_all(self) -> bool:
        return self.event_type == ALL_EVENTS

    @classmethod
    def from_source(cls, *, hook_id: str, event_type: str, source: Mapping[str, Any]) -> HookDefinition | None:
        """
        Build a definition from a stored document body.

        Returns None when the document is not runnable (missing `lang` or
        `script`); such documents are skipped, not reported.
        """
        lang = source.get("lang")
        script = source.get("script")
        if lang is None or script is None or str(lang) == "" or str(script) == "":
            return None
        priority = source.get("priority")
        try:
            priority = int(priority) if priority is not None else None
        except (TypeError, ValueError, OverflowError):
            priority = None
        raw_type = source.get("script_type")
        return cls(
            hook_id=hook_id,
            event_type=event_type,
            priority=priority,
            lang=str(lang),
            script=str(script),
            script_type=str(raw_type) if raw_type is not None else None,
        )
