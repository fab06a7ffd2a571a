from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from loguru import logger

from .errors import RecordsDropped
from .pipeline import AuditPipeline, PipelineSettings
from .utils import iter_ndjson

app = typer.Typer(help="audit-relay operational CLI")

# ---------------------------
# Common options
# ---------------------------


def endpoint_opt() -> Optional[str]:
    return typer.Option(None, "--endpoint", envvar="AUDIT_ENDPOINT", help="Collector URL")


def _load_settings(endpoint: Optional[str], **overrides) -> PipelineSettings:
    kwargs = {k: v for k, v in overrides.items() if v is not None}
    if endpoint:
        kwargs["endpoint"] = endpoint
    try:
        return PipelineSettings(**kwargs)
    except Exception as e:
        raise typer.BadParameter(f"invalid settings: {e}") from e


@app.command("config")
def show_config(endpoint: Optional[str] = endpoint_opt()):
    """Print the resolved pipeline settings."""
    settings = _load_settings(endpoint)
    typer.echo(json.dumps(settings.model_dump(), indent=2))


@app.command("send")
def send(
    path: str = typer.Argument(..., help="NDJSON file of records ('-' for stdin)"),
    endpoint: Optional[str] = endpoint_opt(),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", help="Records per POST"),
    timeout: float = typer.Option(10.0, "--timeout", help="Seconds to wait for delivery on exit"),
):
    """Ship records from an NDJSON file through the pipeline, then print its status."""
    settings = _load_settings(endpoint, max_batch_size=batch_size)
    try:
        summary = asyncio.run(_send(settings, path, timeout))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read records from {path}: {e}")
        raise typer.Exit(code=2)
    typer.echo(json.dumps(summary, indent=2))
    if summary["dropped"]:
        raise typer.Exit(code=1)


async def _send(settings: PipelineSettings, path: str, timeout: float) -> dict:
    dropped = 0

    def on_drop(signal: RecordsDropped) -> None:
        nonlocal dropped
        dropped += signal.count

    pipeline = AuditPipeline(settings, on_drop=on_drop)
    await pipeline.start()
    n = 0
    try:
        for obj in iter_ndjson(path):
            pipeline.ingest(obj)
            n += 1
            # keep the buffer below capacity instead of dropping the oldest
            if pipeline.buffer.size >= settings.max_buffer_size:
                pipeline.flush_now()
                await asyncio.sleep(0)
    finally:
        await pipeline.stop(drain=True, timeout=timeout)

    status = pipeline.status()
    # whatever is still queued for retry after shutdown is lost
    dropped += sum(len(e.batch) for e in _pending_retries(pipeline))
    logger.info(f"Sent {n} records to {settings.endpoint} (dropped={dropped})")
    return {"ingested": n, "dropped": dropped, "status": status.to_dict()}


def _pending_retries(pipeline: AuditPipeline):
    while True:
        entry = pipeline.retry_queue.pop()
        if entry is None:
            return
        yield entry


if __name__ == "__main__":
    app()
