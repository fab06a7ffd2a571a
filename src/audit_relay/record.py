"""
Framework-neutral audit record construction.

The request hook of a web framework owns field extraction (route, client
address, user agent); it only needs ``build_record`` or ``RequestAudit``
to produce the flat mapping the pipeline ships.
"""

from __future__ import annotations

import socket
import time
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .utils import generate_id, iso_timestamp


class AuditRecord(BaseModel):
    """One audit entry for a unit of work. Unknown keys are kept as enrichment."""

    model_config = ConfigDict(extra="allow")

    request_id: str = Field(default_factory=generate_id)
    ts: str = Field(default_factory=iso_timestamp)
    method: Optional[str] = None
    path: Optional[str] = None
    status_code: Optional[int] = None
    duration_ms: Optional[int] = None
    hostname: str = Field(default_factory=socket.gethostname)
    query_params: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)


def build_record(
    *,
    ignore_query_params: Optional[Iterable[str]] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """Build a flat record dict with ``ignore_query_params`` keys removed from ``query_params``."""
    query = dict(fields.pop("query_params", None) or {})
    for key in ignore_query_params or ():
        query.pop(key, None)

    return AuditRecord(query_params=query, **fields).model_dump()


class RequestAudit:
    """Collects enrichment for one request and emits its record exactly once.

    Example:
        ra = RequestAudit(method="POST", path="/orders", request_id=req_id)
        ra.annotate(user_id="u-1", tags=["checkout"])
        ...
        ra.complete(pipeline, status_code=201)
    """

    def __init__(self, *, ignore_query_params: Optional[Iterable[str]] = None, **fields: Any):
        self._t0 = time.perf_counter()
        self._ignore = list(ignore_query_params or ())
        self._fields: Dict[str, Any] = {"ts": iso_timestamp(), **fields}
        self._data: Dict[str, Any] = {}
        self._logged = False

    @property
    def completed(self) -> bool:
        return self._logged

    def annotate(self, **overrides: Any) -> None:
        """Merge caller enrichment; later calls win on key clashes."""
        self._data.update(overrides)

    def elapsed_ms(self) -> int:
        return round((time.perf_counter() - self._t0) * 1000)

    def complete(self, pipeline, **response_fields: Any) -> Optional[Dict[str, Any]]:
        """Build the record and ingest it.

        Returns None on a second call, or when the collected fields do not
        form a valid record (logged, never raised).
        """
        if self._logged:
            return None
        self._logged = True

        fields = {
            **self._fields,
            "duration_ms": self.elapsed_ms(),
            **response_fields,
            **self._data,
        }
        # a per-request ignore list replaces the default one
        ignored = fields.pop("ignore_query_params", self._ignore)
        try:
            record = build_record(ignore_query_params=ignored, **fields)
        except Exception as exc:
            logger.error(f"Error creating audit log entry: {exc}")
            return None
        pipeline.ingest(record)
        return record
