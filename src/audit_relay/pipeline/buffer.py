from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, Any, Optional, Callable

from loguru import logger

from ..errors import BufferOverflow
from .types import Batch, Record


class RecordBuffer:
    """Bounded FIFO of records waiting to be batched.

    ``ingest`` never blocks on I/O: when the buffer is over capacity the
    oldest records are discarded and ``on_overflow`` is told how many.
    The lock is held only for the structural update.
    """

    def __init__(
        self,
        capacity: int,
        *,
        on_overflow: Optional[Callable[[BufferOverflow], None]] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._items: Deque[Dict[str, Any]] = deque()
        self._on_overflow = on_overflow
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def ingest(self, record: Record) -> int:
        """Append ``record`` to the tail; returns the number of old records dropped."""
        item = dict(record)  # producer keeps no handle on what we store
        with self._lock:
            self._items.append(item)
            dropped = len(self._items) - self._capacity
            for _ in range(max(dropped, 0)):
                self._items.popleft()

        if dropped > 0:
            logger.warning(f"Buffer overflow: dropped {dropped} old log entries")
            if self._on_overflow:
                self._on_overflow(BufferOverflow(dropped))
            return dropped
        return 0

    def drain(self, max_count: int) -> Batch:
        """Remove and return up to ``max_count`` records from the head."""
        if max_count <= 0:
            return []
        with self._lock:
            n = min(max_count, len(self._items))
            return [self._items.popleft() for _ in range(n)]
