# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Python script engine.

Hook scripts are plain Python statements executed with the dispatch context
bound as globals (`event_type`, `is_master`, `event`, `nodes`, `cluster`).
A script may bind `result`; that value is returned from execute().

The builtins table is curated (no open/exec/eval/__import__). This keeps
scripts to the context's capabilities; it is not a security sandbox.
"""

import builtins
from collections.abc import Mapping
from types import CodeType
from typing import Any

from ..core.log import get_logger

_SAFE_BUILTINS = (
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "enumerate",
    "filter",
    "float",
    "frozenset",
    "int",
    "isinstance",
    "len",
    "list",
    "map",
    "max",
    "min",
    "print",
    "range",
    "repr",
    "reversed",
    "round",
    "set",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    "Exception",
    "KeyError",
    "RuntimeError",
    "ValueError",
)


class PythonScriptEngine:
    lang = "python"
    aliases: tuple[str, ...] = ("py",)
    extensions: tuple[str, ...] = ("py",)

    def __init__(self, *, extra_builtins: Mapping[str, Any] | None = None) -> None:
        self._builtins: dict[str, Any] = {name: getattr(builtins, name) for name in _SAFE_BUILTINS}
        if extra_builtins:
            self._builtins.update(extra_builtins)
        self.log = get_logger("scripting.python")

    def compile(self, source: str, *, name: str) -> CodeType:
        return compile(source, name, "exec", dont_inherit=True)

    def execute(self, compiled: CodeType, variables: Mapping[str, Any]) -> Any:
        scope: dict[str, Any] = {"__builtins__": self._builtins, "log": self.log}
        scope.update(variables)
        exec(compiled, scope)  # noqa: S102 - hook scripts are operator-provided
        return scope.get("result")
