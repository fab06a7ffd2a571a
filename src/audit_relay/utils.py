"""
Utility functions for audit_relay.

Includes id/timestamp helpers and NDJSON reading for the CLI.
"""

from __future__ import annotations

import gzip
import json
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator


def generate_id() -> str:
    """Generate a UUID string for request correlation."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def iso_timestamp(dt: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    dt = (dt or utc_now()).astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iter_ndjson(path: str) -> Iterator[Dict[str, Any]]:
    """Yield one JSON object per non-blank line.

    ``-`` reads stdin; ``*.gz`` files are decompressed transparently.
    Lines that do not decode to an object raise ``ValueError`` with the
    line number.
    """
    if path == "-":
        fh = sys.stdin
        close = False
    elif path.endswith(".gz"):
        fh = gzip.open(path, "rt", encoding="utf-8")
        close = True
    else:
        fh = Path(path).open("r", encoding="utf-8")
        close = True

    try:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"line {lineno}: invalid JSON ({e.msg})") from e
            if not isinstance(obj, dict):
                raise ValueError(f"line {lineno}: expected a JSON object")
            yield obj
    finally:
        if close:
            fh.close()
