"""
Audit Relay

Captures structured audit records and ships them to a collector in
batches, off the request path.

Usage:
    from audit_relay import AuditPipeline, PipelineSettings, RequestAudit

    async with AuditPipeline(PipelineSettings(endpoint="http://collector/audit")) as audit:
        ra = RequestAudit(method="GET", path="/orders")
        ra.annotate(user_id="u-42")
        ra.complete(audit, status_code=200)
"""

from .errors import (
    AuditRelayError,
    DeliveryError,
    SerializationError,
    RecordsDropped,
    DeliveryCancelled,
    Unserializable,
    BufferOverflow,
    RetryQueueFull,
    CircuitOpenDrop,
    RetryExhausted,
)
from .pipeline import AuditPipeline, PipelineSettings, PipelineStatus, BreakerState
from .record import AuditRecord, RequestAudit, build_record

__version__ = "1.0.0"
__all__ = [
    "AuditPipeline",
    "PipelineSettings",
    "PipelineStatus",
    "BreakerState",
    "AuditRecord",
    "RequestAudit",
    "build_record",
    "AuditRelayError",
    "DeliveryError",
    "SerializationError",
    "RecordsDropped",
    "DeliveryCancelled",
    "Unserializable",
    "BufferOverflow",
    "RetryQueueFull",
    "CircuitOpenDrop",
    "RetryExhausted",
]
