"""
Periodic flush and retry schedulers.

Both timers only do O(1) structural work on their tick (drain the buffer,
pop the retry queue) and hand the network call to a detached task, so a
slow collector never delays the next tick. Outcomes are handled inside
that task:

    flush:  gate -> send -> ok | RetryEntry(attempts=1) -> retry queue | drop
    retry:  gate -> send -> ok | RetryEntry(attempts+1) -> retry queue | drop
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Coroutine, Any, Optional

from loguru import logger

from ..errors import (
    CircuitOpenDrop,
    DeliveryCancelled,
    RecordsDropped,
    RetryExhausted,
    RetryQueueFull,
    SerializationError,
    Unserializable,
)
from .breaker import CircuitBreaker
from .buffer import RecordBuffer
from .delivery import DeliveryClient
from .metrics import BATCHES_DELIVERED, DELIVERY_FAILURES, DELIVERY_LATENCY_MS
from .retry_queue import RetryQueue
from .types import Batch, RetryEntry


class _DeliveryScheduler:
    path = "delivery"

    def __init__(
        self,
        *,
        interval_sec: float,
        breaker: CircuitBreaker,
        client: DeliveryClient,
        retry_queue: RetryQueue,
        max_retries: int,
        on_drop: Callable[[RecordsDropped], None],
        pipeline_id: str = "audit",
    ):
        if interval_sec <= 0:
            raise ValueError("interval_sec must be > 0")
        self.interval_sec = interval_sec
        self._breaker = breaker
        self._client = client
        self._retry_queue = retry_queue
        self._max_retries = max_retries
        self._on_drop = on_drop
        self._pipeline_id = pipeline_id

        self._task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"{self._pipeline_id}-{self.path}")

    async def stop(self) -> None:
        """Stop the timer; in-flight deliveries keep running (see ``wait_idle``)."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def wait_idle(self, timeout: float | None = None) -> int:
        """Wait for in-flight deliveries; cancels stragglers after ``timeout``.

        Returns the number of deliveries that had to be cancelled.
        """
        if not self._inflight:
            return 0
        _, pending = await asyncio.wait(set(self._inflight), timeout=timeout)
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"[{self._pipeline_id}] cancelled {len(pending)} {self.path} deliveries")
        return len(pending)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            try:
                self.tick()
            except Exception as exc:
                logger.error(f"[{self._pipeline_id}] {self.path} tick failed: {exc!r}")

    def tick(self) -> Optional[asyncio.Task]:
        raise NotImplementedError

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._reap)
        return task

    def _reap(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[{self._pipeline_id}] {self.path} delivery task crashed: {task.exception()!r}")

    async def _attempt(self, batch: Batch) -> bool:
        """One delivery attempt; reports the outcome to the breaker.

        Returns True once the batch is settled (delivered, or discarded as
        unencodable) and False when it should go to the retry path.
        Cancellation during shutdown is signalled as a drop and re-raised.
        """
        t0 = time.perf_counter()
        try:
            await self._client.send(batch)
        except asyncio.CancelledError:
            logger.warning(f"[{self._pipeline_id}] {self.path} delivery cancelled, dropping audit batch")
            self._on_drop(DeliveryCancelled(len(batch)))
            raise
        except SerializationError as exc:
            # local encoding problem, not an endpoint failure: breaker untouched
            logger.error(f"[{self._pipeline_id}] {exc}, dropping audit batch")
            self._on_drop(Unserializable(len(batch)))
            return True
        except Exception as exc:
            self._breaker.record_failure()
            DELIVERY_FAILURES.labels(self._pipeline_id, self.path).inc()
            logger.debug(f"[{self._pipeline_id}] {self.path} delivery of {len(batch)} failed: {exc}")
            return False
        finally:
            DELIVERY_LATENCY_MS.labels(self._pipeline_id, self.path).observe(
                (time.perf_counter() - t0) * 1000.0
            )
        self._breaker.record_success()
        BATCHES_DELIVERED.labels(self._pipeline_id, self.path).inc()
        return True

    def _requeue(self, entry: RetryEntry) -> None:
        if not self._retry_queue.offer(entry):
            logger.warning("Retry queue full, dropping failed audit batch")
            self._on_drop(RetryQueueFull(len(entry.batch)))


class FlushScheduler(_DeliveryScheduler):
    """Every ``interval_sec`` drains up to ``batch_size`` records and ships them."""

    path = "fresh"

    def __init__(self, buffer: RecordBuffer, *, batch_size: int, **kwargs):
        super().__init__(**kwargs)
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._buffer = buffer
        self.batch_size = batch_size

    def tick(self) -> Optional[asyncio.Task]:
        batch = self._buffer.drain(self.batch_size)
        if not batch:
            return None
        return self._spawn(self.deliver(batch))

    async def deliver(self, batch: Batch) -> None:
        if not self._breaker.allow():
            logger.warning("Circuit breaker OPEN, dropping audit batch")
            self._on_drop(CircuitOpenDrop(len(batch)))
            return

        if await self._attempt(batch):
            return

        if self._max_retries == 0:
            logger.error("Audit batch failed and retries are disabled, dropping logs")
            self._on_drop(RetryExhausted(len(batch), attempts=1))
            return
        self._requeue(RetryEntry(batch=batch, attempts=1))


class RetryScheduler(_DeliveryScheduler):
    """Every ``interval_sec`` re-attempts the head of the retry queue.

    An entry is re-attempted at most ``max_retries`` times after the send
    that created it; spacing comes from queue depth and the period alone.
    """

    path = "retry"

    def tick(self) -> Optional[asyncio.Task]:
        if self._retry_queue.size == 0 or not self._breaker.allow():
            return None
        entry = self._retry_queue.pop()
        if entry is None:
            return None
        return self._spawn(self.redeliver(entry))

    async def redeliver(self, entry: RetryEntry) -> None:
        if await self._attempt(entry.batch):
            return

        if entry.attempts < self._max_retries:
            self._requeue(entry.next_attempt())
            return

        logger.error("Audit batch failed after max retries, dropping logs")
        self._on_drop(RetryExhausted(len(entry.batch), attempts=entry.attempts + 1))
