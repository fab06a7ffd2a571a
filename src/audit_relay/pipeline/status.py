from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from .breaker import BreakerState


@dataclass(frozen=True)
class PipelineStatus:
    """Point-in-time view of the pipeline for health checks and scrapes.

    Attributes:
        breaker_state: Circuit breaker state (closed, open, half_open)
        consecutive_failures: Failures since the last successful delivery
        buffer_size: Records waiting to be batched
        retry_queue_size: Failed batches waiting for re-delivery
        max_buffer_size: Buffer capacity
        max_retry_queue_size: Retry queue capacity
        in_flight: Delivery attempts currently awaiting a response
    """

    breaker_state: BreakerState
    consecutive_failures: int
    buffer_size: int
    retry_queue_size: int
    max_buffer_size: int
    max_retry_queue_size: int
    in_flight: int = 0

    @property
    def buffer_utilization(self) -> float:
        return self.buffer_size / self.max_buffer_size if self.max_buffer_size > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["breaker_state"] = self.breaker_state.value
        return d
