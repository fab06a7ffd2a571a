"""Audit delivery pipeline

Non-blocking producer→buffer→batch→collector pipeline with:
- RecordBuffer (bounded, drop-oldest)
- CircuitBreaker guarding the collector endpoint
- DeliveryClient (one HTTP POST per batch, no retries)
- RetryQueue + RetryScheduler (bounded, reject-when-full)
- FlushScheduler (fire-and-forget batch delivery)
- PipelineStatus snapshot for health checks
- Prometheus metrics
- Environment-based settings
"""

from .types import Record, Batch, RetryEntry, DropCallback
from .buffer import RecordBuffer
from .breaker import BreakerState, BreakerSnapshot, CircuitBreaker, next_state
from .delivery import DeliveryClient
from .retry_queue import RetryQueue
from .schedulers import FlushScheduler, RetryScheduler
from .status import PipelineStatus
from .settings import PipelineSettings, get_settings
from .audit_pipeline import AuditPipeline

__all__ = [
    # types
    "Record",
    "Batch",
    "RetryEntry",
    "DropCallback",
    "PipelineStatus",
    # components
    "RecordBuffer",
    "BreakerState",
    "BreakerSnapshot",
    "CircuitBreaker",
    "next_state",
    "DeliveryClient",
    "RetryQueue",
    # runtime
    "FlushScheduler",
    "RetryScheduler",
    "AuditPipeline",
    "PipelineSettings",
    "get_settings",
]
