# SPDX-License-Identifier: Apache-2.0
from .python import PythonScriptEngine
from .service import CompiledScript, ScriptEngine, ScriptService

__all__ = ["CompiledScript", "PythonScriptEngine", "ScriptEngine", "ScriptService"]
