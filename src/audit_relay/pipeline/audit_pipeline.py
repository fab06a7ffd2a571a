"""
AuditPipeline: buffer -> flush scheduler -> breaker -> delivery -> retry queue.

One instance owns all mutable delivery state; nothing is module-global.

Example:
    settings = PipelineSettings(endpoint="http://collector:8080/audit")
    async with AuditPipeline(settings) as audit:
        audit.ingest({"request_id": "...", "ts": "...", "status_code": 200})
        print(audit.status().to_dict())
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Optional

from loguru import logger

from ..errors import RecordsDropped
from ..record import RequestAudit
from .breaker import CircuitBreaker
from .buffer import RecordBuffer
from .delivery import DeliveryClient
from .metrics import (
    BUFFER_SIZE,
    CIRCUIT_STATE,
    RECORDS_DROPPED,
    RECORDS_INGESTED,
    RETRY_QUEUE_SIZE,
    circuit_state_value,
)
from .retry_queue import RetryQueue
from .schedulers import FlushScheduler, RetryScheduler
from .settings import PipelineSettings
from .status import PipelineStatus
from .types import Clock, DropCallback, Record


class AuditPipeline:
    def __init__(
        self,
        settings: PipelineSettings,
        *,
        client: Optional[DeliveryClient] = None,
        clock: Clock = time.monotonic,
        on_drop: Optional[DropCallback] = None,
    ):
        self.settings = settings
        self.pipeline_id = settings.pipeline_id
        self._on_drop_cb = on_drop
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False
        self._callbacks: set[asyncio.Task] = set()
        self._metrics_task: Optional[asyncio.Task] = None

        self.buffer = RecordBuffer(settings.max_buffer_size, on_overflow=self._signal_drop)
        self.retry_queue = RetryQueue(settings.max_retry_queue_size)
        self.breaker = CircuitBreaker(
            failure_threshold=settings.circuit_breaker_threshold,
            reset_timeout_sec=settings.circuit_breaker_reset_timeout_sec,
            clock=clock,
            name=self.pipeline_id,
        )
        self._owns_client = client is None
        self.client = client or DeliveryClient(
            settings.endpoint, timeout_sec=settings.request_timeout_sec
        )

        common = dict(
            breaker=self.breaker,
            client=self.client,
            retry_queue=self.retry_queue,
            max_retries=settings.max_retries,
            on_drop=self._signal_drop,
            pipeline_id=self.pipeline_id,
        )
        self.flusher = FlushScheduler(
            self.buffer,
            batch_size=settings.max_batch_size,
            interval_sec=settings.flush_interval_sec,
            **common,
        )
        self.retrier = RetryScheduler(interval_sec=settings.retry_delay_sec, **common)

    # --------------- lifecycle

    async def __aenter__(self) -> "AuditPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop(drain=True)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        self.flusher.start()
        self.retrier.start()
        self._metrics_task = asyncio.create_task(
            self._metrics_loop(), name=f"{self.pipeline_id}-metrics"
        )
        self._started = True
        logger.info(
            f"AuditPipeline[{self.pipeline_id}] started -> {self.settings.endpoint} "
            f"(flush={self.settings.flush_interval_ms}ms, retry={self.settings.retry_delay_ms}ms)"
        )

    async def stop(self, drain: bool = True, timeout: float = 5.0) -> None:
        """Stop both timers, optionally ship what is left, then close the client.

        With ``drain`` the buffer is flushed in ``max_batch_size`` batches
        through the normal gated path. The retry queue is not drained.
        """
        if not self._started:
            return
        await self.flusher.stop()
        await self.retrier.stop()
        if self._metrics_task is not None:
            self._metrics_task.cancel()
            try:
                await self._metrics_task
            except asyncio.CancelledError:
                pass
            self._metrics_task = None

        if drain:
            while self.buffer.size:
                self.flusher.tick()
        await self.flusher.wait_idle(timeout)
        await self.retrier.wait_idle(timeout)

        if self._owns_client:
            await self.client.aclose()
        self._started = False
        self.refresh_metrics()
        logger.info(
            f"AuditPipeline[{self.pipeline_id}] stopped "
            f"(buffer={self.buffer.size}, retry_queue={self.retry_queue.size})"
        )

    # --------------- producer API

    def ingest(self, record: Record) -> None:
        """Hand one record to the pipeline. Never blocks, never raises."""
        if self.settings.disabled:
            return
        try:
            self.buffer.ingest(record)
        except Exception as exc:
            logger.error(f"AuditPipeline[{self.pipeline_id}] rejected record: {exc!r}")
            return
        RECORDS_INGESTED.labels(self.pipeline_id).inc()

    def audit_request(self, **fields) -> RequestAudit:
        """Start a ``RequestAudit`` using the configured query-param ignore list."""
        return RequestAudit(ignore_query_params=self.settings.ignore_query_params, **fields)

    def flush_now(self) -> Optional[asyncio.Task]:
        """Run one flush tick immediately; returns the delivery task, if any."""
        return self.flusher.tick()

    def retry_now(self) -> Optional[asyncio.Task]:
        return self.retrier.tick()

    # --------------- monitoring

    def status(self) -> PipelineStatus:
        snap = self.breaker.snapshot()
        return PipelineStatus(
            breaker_state=snap.state,
            consecutive_failures=snap.consecutive_failures,
            buffer_size=self.buffer.size,
            retry_queue_size=self.retry_queue.size,
            max_buffer_size=self.buffer.capacity,
            max_retry_queue_size=self.retry_queue.capacity,
            in_flight=self.flusher.in_flight + self.retrier.in_flight,
        )

    def refresh_metrics(self) -> None:
        """Copy the current status into the Prometheus gauges."""
        st = self.status()
        BUFFER_SIZE.labels(self.pipeline_id).set(st.buffer_size)
        RETRY_QUEUE_SIZE.labels(self.pipeline_id).set(st.retry_queue_size)
        CIRCUIT_STATE.labels(self.pipeline_id).set(circuit_state_value(st.breaker_state))

    async def _metrics_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.metrics_poll_sec)
            self.refresh_metrics()

    # --------------- drop signals

    def _signal_drop(self, signal: RecordsDropped) -> None:
        RECORDS_DROPPED.labels(self.pipeline_id, signal.reason).inc(signal.count)
        if self._on_drop_cb is None:
            return
        try:
            result = self._on_drop_cb(signal)
        except Exception as exc:
            logger.debug(f"on_drop callback error (ignored): {type(exc).__name__}: {exc}")
            return
        if inspect.isawaitable(result):
            self._schedule_callback(result)

    def _schedule_callback(self, awaitable) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            task = running.create_task(self._guard_callback(awaitable))
            self._callbacks.add(task)
            task.add_done_callback(self._callbacks.discard)
        elif self._loop is not None and not self._loop.is_closed():
            # ingest() called from a producer thread
            asyncio.run_coroutine_threadsafe(self._guard_callback(awaitable), self._loop)
        else:
            logger.debug("on_drop coroutine discarded: no event loop available")
            if inspect.iscoroutine(awaitable):
                awaitable.close()

    @staticmethod
    async def _guard_callback(awaitable) -> None:
        try:
            await awaitable
        except Exception as exc:
            logger.debug(f"on_drop callback error (ignored): {type(exc).__name__}: {exc}")
