"""
Prometheus collectors for the delivery pipeline.

Registered on the global REGISTRY at import; every series carries a
``pipeline`` label so several pipelines can share one process.
"""

from prometheus_client import Counter, Gauge, Histogram

from .breaker import BreakerState

RECORDS_INGESTED = Counter(
    "audit_records_ingested_total",
    "Records accepted into the buffer",
    ["pipeline"],
)

RECORDS_DROPPED = Counter(
    "audit_records_dropped_total",
    "Records discarded by the pipeline",
    ["pipeline", "reason"],
)

BATCHES_DELIVERED = Counter(
    "audit_batches_delivered_total",
    "Batches accepted by the collector",
    ["pipeline", "path"],
)

DELIVERY_FAILURES = Counter(
    "audit_delivery_failures_total",
    "Failed delivery attempts",
    ["pipeline", "path"],
)

DELIVERY_LATENCY_MS = Histogram(
    "audit_delivery_latency_ms",
    "Delivery attempt latency in milliseconds",
    ["pipeline", "path"],
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

BUFFER_SIZE = Gauge("audit_buffer_size", "Records waiting in the buffer", ["pipeline"])
RETRY_QUEUE_SIZE = Gauge("audit_retry_queue_size", "Batches waiting for retry", ["pipeline"])
CIRCUIT_STATE = Gauge(
    "audit_circuit_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["pipeline"],
)

_STATE_VALUE = {
    BreakerState.CLOSED: 0,
    BreakerState.HALF_OPEN: 1,
    BreakerState.OPEN: 2,
}


def circuit_state_value(state: BreakerState) -> int:
    return _STATE_VALUE[state]
