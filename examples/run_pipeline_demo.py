"""
Demo for AuditPipeline.

Runs a flaky in-process collector (httpx.MockTransport) so the circuit
breaker, retry queue and drop signals can be watched in the logs.
Prometheus metrics are exposed on :8000/metrics while it runs.
"""

import asyncio
import itertools

import httpx
from loguru import logger
from prometheus_client import start_http_server

from audit_relay import AuditPipeline, PipelineSettings, RecordsDropped
from audit_relay.pipeline import DeliveryClient


def flaky_collector(fail_every: int = 3):
    counter = itertools.count(1)

    def handler(request: httpx.Request) -> httpx.Response:
        n = next(counter)
        if n % fail_every == 0:
            return httpx.Response(503, text="collector busy")
        return httpx.Response(202, text="accepted")

    return handler


def on_drop(signal: RecordsDropped) -> None:
    logger.warning(f"⚠️  dropped {signal.count} record(s): {signal.reason}")


async def main():
    start_http_server(8000)
    logger.info("📊 Prometheus metrics available at http://localhost:8000/metrics")

    settings = PipelineSettings(
        endpoint="http://collector.local/audit",
        flush_interval_ms=100,
        retry_delay_ms=50,
        max_batch_size=20,
        max_buffer_size=200,
        circuit_breaker_threshold=3,
        circuit_breaker_reset_timeout_ms=500,
    )
    http = httpx.AsyncClient(transport=httpx.MockTransport(flaky_collector()))
    client = DeliveryClient(settings.endpoint, client=http)

    async with AuditPipeline(settings, client=client, on_drop=on_drop) as audit:
        logger.info("🚀 Producing 1,000 request records")
        for i in range(1_000):
            ra = audit.audit_request(method="GET", path=f"/items/{i % 17}")
            ra.annotate(user_id=f"u-{i % 5}")
            ra.complete(audit, status_code=200)
            if i % 100 == 0:
                st = audit.status()
                logger.info(
                    f"Progress: {i}/1000 | buffer={st.buffer_size}/{st.max_buffer_size} "
                    f"retry={st.retry_queue_size} breaker={st.breaker_state.value}"
                )
            await asyncio.sleep(0.002)

        await asyncio.sleep(1.0)
        logger.info(f"Final status: {audit.status().to_dict()}")

    await http.aclose()
    logger.info("✅ Pipeline demo complete")


if __name__ == "__main__":
    asyncio.run(main())
