from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Union

from ..errors import RecordsDropped

Record = Mapping[str, Any]
Batch = List[Dict[str, Any]]

DropCallback = Callable[[RecordsDropped], Union[None, Awaitable[None]]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class RetryEntry:
    """A failed batch waiting in the retry queue.

    ``attempts`` counts failed deliveries of this batch so far (>= 1).
    """

    batch: Batch
    attempts: int = 1

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")

    def next_attempt(self) -> "RetryEntry":
        return RetryEntry(batch=self.batch, attempts=self.attempts + 1)
