# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Script service: resolves hook script sources and runs them on pluggable engines.

Sources come in three kinds (see ScriptKind):
  INLINE  the hook document carries the source text;
  STORED  the document names a script registered with put_stored_script();
  FILE    the document names a file under `scripts_dir`.

Inline and stored units are cached per (lang, kind, script) so hot hooks do
not recompile on every dispatch. The service is called from worker threads.
"""

import threading
from collections import OrderedDict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from ..api.errors import ScriptCompileError, ScriptExecutionError, UnknownScriptLanguage
from ..api.hooks import ScriptKind
from ..core.log import get_logger

__all__ = ["CompiledScript", "ScriptEngine", "ScriptService"]


@runtime_checkable
class ScriptEngine(Protocol):
    """
    A script language.

    Attributes:
        lang: Primary language name used in hook documents.
        aliases: Other accepted names.
        extensions: File extensions tried for FILE scripts given without one.
    """

    lang: str
    aliases: tuple[str, ...]
    extensions: tuple[str, ...]

    def compile(self, source: str, *, name: str) -> Any: ...
    def execute(self, compiled: Any, variables: Mapping[str, Any]) -> Any: ...


@dataclass(frozen=True)
class CompiledScript:
    lang: str
    kind: ScriptKind
    name: str
    unit: Any
    engine: ScriptEngine


class ScriptService:
    def __init__(
        self,
        engines: Iterable[ScriptEngine] = (),
        *,
        scripts_dir: str | Path | None = None,
        cache_size: int = 256,
    ) -> None:
        self._engines: dict[str, ScriptEngine] = {}
        self._stored: dict[tuple[str, str], str] = {}
        self._cache: OrderedDict[tuple[str, ScriptKind, str], CompiledScript] = OrderedDict()
        self._cache_size = cache_size
        self._lock = threading.Lock()
        self.scripts_dir = Path(scripts_dir).resolve() if scripts_dir else None
        self.log = get_logger("scripting")
        for e in engines:
            self.register(e)

    # ---- registry ---------------------------------------------------------

    def register(self, engine: ScriptEngine) -> None:
        """Register an engine under its lang and aliases (last wins)."""
        for name in (engine.lang, *engine.aliases):
            self._engines[name.lower()] = engine

    def engine(self, lang: str) -> ScriptEngine:
        try:
            return self._engines[lang.lower()]
        except KeyError:
            raise UnknownScriptLanguage(f"script_lang not supported [{lang}]", lang=lang) from None

    def put_stored_script(self, lang: str, script_id: str, source: str) -> None:
        engine = self.engine(lang)
        with self._lock:
            self._stored[(engine.lang, script_id)] = source
            self._evict(lambda key: key[1] == ScriptKind.STORED and key[0] == engine.lang)

    def delete_stored_script(self, lang: str, script_id: str) -> bool:
        engine = self.engine(lang)
        with self._lock:
            self._evict(lambda key: key[1] == ScriptKind.STORED and key[0] == engine.lang)
            return self._stored.pop((engine.lang, script_id), None) is not None

    # ---- compile / execute -----------------------------------------------

    def compile(self, lang: str, script: str, kind: ScriptKind) -> CompiledScript:
        engine = self.engine(lang)
        key = (engine.lang, kind, script)
        # file scripts may be edited in place, so they are never cached
        cacheable = kind is not ScriptKind.FILE
        with self._lock:
            hit = self._cache.get(key) if cacheable else None
            if hit is not None:
                self._cache.move_to_end(key)
                return hit

        name, source = self._resolve_source(engine, script, kind)
        try:
            unit = engine.compile(source, name=name)
        except ScriptCompileError:
            raise
        except Exception as e:
            raise ScriptCompileError(f"failed to compile {kind.value} script [{name}]: {e}", lang=lang, script=script) from e

        compiled = CompiledScript(lang=engine.lang, kind=kind, name=name, unit=unit, engine=engine)
        if not cacheable:
            return compiled
        with self._lock:
            self._cache[key] = compiled
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)
        return compiled

    def execute(self, compiled: CompiledScript, variables: Mapping[str, Any]) -> Any:
        try:
            return compiled.engine.execute(compiled.unit, variables)
        except Exception as e:
            raise ScriptExecutionError(
                f"failed to execute {compiled.kind.value} script [{compiled.name}]: {e}",
                lang=compiled.lang,
                script=compiled.name,
            ) from e

    # ---- helpers ----------------------------------------------------------

    def _resolve_source(self, engine: ScriptEngine, script: str, kind: ScriptKind) -> tuple[str, str]:
        if kind is ScriptKind.INLINE:
            return "<inline>", script
        if kind is ScriptKind.STORED:
            with self._lock:
                source = self._stored.get((engine.lang, script))
            if source is None:
                raise ScriptCompileError(f"unable to find stored script [{script}]", lang=engine.lang, script=script)
            return f"<stored:{script}>", source
        path = self._script_file(engine, script)
        try:
            return str(path), path.read_text(encoding="utf-8")
        except OSError as e:
            raise ScriptCompileError(f"unable to read file script [{script}]: {e}", lang=engine.lang, script=script) from e

    def _script_file(self, engine: ScriptEngine, name: str) -> Path:
        if self.scripts_dir is None:
            raise ScriptCompileError("file scripts are disabled (no scripts_dir)", lang=engine.lang, script=name)
        candidates = [self.scripts_dir / name] + [self.scripts_dir / f"{name}.{ext}" for ext in engine.extensions]
        for cand in candidates:
            path = cand.resolve()
            if not path.is_relative_to(self.scripts_dir):
                raise ScriptCompileError(f"script path escapes scripts_dir [{name}]", lang=engine.lang, script=name)
            if path.is_file():
                return path
        raise ScriptCompileError(f"unable to find file script [{name}]", lang=engine.lang, script=name)

    def _evict(self, pred) -> None:
        for key in [k for k in self._cache if pred(k)]:
            del self._cache[key]
