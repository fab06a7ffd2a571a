"""
Pytest configuration and fixtures for audit-relay.

Provides cross-platform event loop configuration and test utilities.
"""

import asyncio
import sys

import httpx
import pytest

from audit_relay.errors import DeliveryError
from audit_relay.pipeline import PipelineSettings

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedClient:
    """Delivery client double: records batches, fails while ``fail`` is set."""

    def __init__(self, fail: bool = False, status: int = 500):
        self.fail = fail
        self.status = status
        self.sent: list[list[dict]] = []

    async def send(self, batch) -> None:
        await asyncio.sleep(0)
        self.sent.append(list(batch))
        if self.fail:
            raise DeliveryError(status=self.status)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted_client():
    return ScriptedClient()


@pytest.fixture
def collector():
    """MockTransport-backed collector; ``collector.status`` controls the response."""

    class Collector:
        def __init__(self):
            self.status = 200
            self.requests: list[httpx.Request] = []

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(self.status, text="ok" if self.status < 400 else "error")

        def client(self) -> httpx.AsyncClient:
            return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    return Collector()


@pytest.fixture
def settings_factory(monkeypatch):
    """Build PipelineSettings isolated from the host environment."""
    for var in ("AUDIT_DISABLED", "DISABLE_AUDIT_LOGGING", "AUDIT_ENDPOINT"):
        monkeypatch.delenv(var, raising=False)

    def _make(**overrides) -> PipelineSettings:
        values = {"endpoint": "http://collector.test/audit", **overrides}
        return PipelineSettings(**values)

    return _make
