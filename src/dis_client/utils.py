"""
Utility functions for the DIS client.

Time helpers, NDJSON reading and partition key derivation used by the CLI and
the batch processor.
"""

from __future__ import annotations

import gzip
import hashlib
import json
import time
from typing import Any, Iterator, Optional


def now_ms() -> int:
    """Current time in ms since epoch (record timestamp unit)."""
    return int(time.time() * 1000)


def iter_ndjson(path: str) -> Iterator[dict[str, Any]]:
    """Yield one JSON object per non-blank line; ``.gz`` files are decompressed."""
    opener = gzip.open if path.endswith(".gz") else open
    with opener(path, "rt", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({e.msg})") from e


def encode_json(obj: Any) -> bytes:
    """Compact JSON payload."""
    return json.dumps(obj, separators=(",", ":"), default=str).encode("utf-8")


def partition_key_for(obj: dict[str, Any], field: Optional[str] = None) -> str:
    """Use ``obj[field]`` when present, otherwise a stable hash of the object."""
    if field and obj.get(field) is not None:
        return str(obj[field])
    data_str = json.dumps(obj, sort_keys=True, default=str)
    return hashlib.md5(data_str.encode()).hexdigest()[:16]
