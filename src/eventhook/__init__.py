from __future__ import annotations

# Runtime package version from the installed distribution metadata.
try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("eventhook")
except Exception:  # pragma: no cover
    # source checkout without an install
    __version__ = "0.0.0"

from .core.config import EventHookConfig
from .runtime.coordinator import DispatchCoordinator
from .service import EventHookService

__all__ = [
    "DispatchCoordinator",
    "EventHookConfig",
    "EventHookService",
    "__version__",
]
