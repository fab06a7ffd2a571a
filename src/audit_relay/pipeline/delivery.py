"""
Delivery client: one HTTP POST per batch, no retries.

Retry policy lives in the schedulers; this module only turns a batch into
a request and a response into success or ``DeliveryError``.
"""

from __future__ import annotations

import json
from typing import Optional

import httpx
from loguru import logger

from ..errors import DeliveryError, SerializationError
from .types import Batch

DEFAULT_TIMEOUT_SEC = 2.0


class DeliveryClient:
    """Posts batches as a JSON array to the collector endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        if not endpoint:
            raise ValueError("endpoint required")
        self.endpoint = endpoint
        self.timeout_sec = timeout_sec
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_sec)

    async def __aenter__(self) -> "DeliveryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def send(self, batch: Batch) -> None:
        """Deliver ``batch``.

        Raises ``SerializationError`` if the batch cannot be encoded (nothing
        is sent) and ``DeliveryError`` for transport errors or non-2xx.
        """
        try:
            body = json.dumps(batch, default=str)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"batch of {len(batch)} is not JSON-encodable: {exc}") from exc

        try:
            resp = await self._client.post(
                self.endpoint,
                content=body,
                headers=self._headers,
                timeout=self.timeout_sec,
            )
        except httpx.HTTPError as exc:
            raise DeliveryError(cause=exc) from exc

        if not resp.is_success:
            raise DeliveryError(status=resp.status_code)

        logger.debug(f"Delivered batch of {len(batch)} to {self.endpoint} ({resp.status_code})")
