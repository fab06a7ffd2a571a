from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from .types import RetryEntry


class RetryQueue:
    """Bounded FIFO of failed batches.

    Unlike the record buffer this never evicts: ``offer`` rejects new
    entries once the queue is at capacity and the caller drops them.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._entries: Deque[RetryEntry] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def offer(self, entry: RetryEntry) -> bool:
        """Append ``entry`` to the tail; False (and nothing stored) when full."""
        with self._lock:
            if len(self._entries) >= self._capacity:
                return False
            self._entries.append(entry)
            return True

    def pop(self) -> Optional[RetryEntry]:
        with self._lock:
            if not self._entries:
                return None
            return self._entries.popleft()
