# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for the event hook pipeline.

Store failures are split by how the coordinator treats them: the two transient
kinds are expected while the cluster is in transition and only logged at debug,
everything else is logged as an error. No error leaves the coordinator; the next
notification re-attempts naturally.
"""


class EventHookError(Exception):
    """Base class for all eventhook errors."""

    ...


class HookStoreError(EventHookError):
    """The hook store could not be checked or queried."""

    def __init__(self, message: str, *, index: str | None = None, event_type: str | None = None) -> None:
        super().__init__(message)
        self.index = index
        self.event_type = event_type


class StoreUnavailable(HookStoreError):
    """
    The cluster is blocking reads (e.g., no master elected yet, state not
    recovered). Transient; the dispatch is dropped.
    """

    ...


class QueryTimingIssue(HookStoreError):
    """The hook index is not routable yet (shards unassigned, index vanished). Transient."""

    ...


class StoreQueryFailed(HookStoreError):
    """Any other store failure. Unexpected; logged at error severity."""

    ...


class ScriptError(EventHookError):
    """Base class for script compile/execute failures."""

    def __init__(self, message: str, *, lang: str | None = None, script: str | None = None) -> None:
        super().__init__(message)
        self.lang = lang
        self.script = script


class UnknownScriptLanguage(ScriptError):
    """No engine is registered for the requested language."""

    ...


class ScriptCompileError(ScriptError):
    """Script source could not be resolved or compiled."""

    ...


class ScriptExecutionError(ScriptError):
    """A compiled script raised while executing."""

    ...


class CoordinatorStateError(EventHookError, RuntimeError):
    """Lifecycle misuse, e.g. starting a coordinator that was already stopped."""

    ...
