from __future__ import annotations

"""
eventhook.core.utils
====================

Small helpers with no external dependencies:
- compact JSON (de)serialization for Kafka payloads;
- short random ids for dispatch correlation in logs.
"""

import json
from secrets import token_hex
from typing import Any


def dumps(x: Any) -> bytes:
    """Compact JSON dump to UTF-8 bytes (ensure_ascii=False, no spaces)."""
    return json.dumps(x, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def loads(b: bytes) -> Any:
    """Inverse of dumps()."""
    return json.loads(b.decode("utf-8"))


def short_id(nbytes: int = 6) -> str:
    """Random hex id, 2*nbytes characters long."""
    if nbytes <= 0:
        raise ValueError("nbytes must be positive")
    return token_hex(nbytes)
