"""
Error taxonomy for the audit delivery pipeline.

Only ``DeliveryError`` is ever raised, and only by the delivery client.
The ``RecordsDropped`` family are drop signals: they are built, logged,
counted and handed to an optional ``on_drop`` callback, never raised to
producers.
"""

from __future__ import annotations


class AuditRelayError(Exception):
    """Base error for audit_relay."""

    pass


class SerializationError(AuditRelayError):
    """A batch could not be encoded as JSON; raised before any network call."""

    pass


class DeliveryError(AuditRelayError):
    """One delivery attempt failed (non-2xx status, transport error or timeout)."""

    def __init__(self, status: int | None = None, cause: BaseException | None = None):
        self.status = status
        self.cause = cause
        if status is not None:
            msg = f"HTTP {status}"
        elif cause is not None:
            msg = f"{type(cause).__name__}: {cause}"
        else:
            msg = "delivery failed"
        super().__init__(msg)


class RecordsDropped(AuditRelayError):
    """Records were discarded by the pipeline."""

    reason = "dropped"

    def __init__(self, count: int, message: str | None = None):
        self.count = count
        super().__init__(message or f"{self.reason}: {count} record(s) dropped")


class BufferOverflow(RecordsDropped):
    reason = "buffer_overflow"


class RetryQueueFull(RecordsDropped):
    reason = "retry_queue_full"


class CircuitOpenDrop(RecordsDropped):
    reason = "circuit_open"


class RetryExhausted(RecordsDropped):
    reason = "retry_exhausted"

    def __init__(self, count: int, attempts: int):
        self.attempts = attempts
        super().__init__(count, f"{self.reason}: {count} record(s) dropped after {attempts} attempts")


class DeliveryCancelled(RecordsDropped):
    reason = "shutdown_cancelled"


class Unserializable(RecordsDropped):
    reason = "unserializable"
