"""
Environment-driven pipeline configuration.

    AUDIT_ENDPOINT=https://collector.internal/audit
    AUDIT_MAX_BUFFER_SIZE=1000
    AUDIT_FLUSH_INTERVAL_MS=5000
    DISABLE_AUDIT_LOGGING=true      # kill switch, same as AUDIT_DISABLED
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    endpoint: str
    pipeline_id: str = "audit"

    max_buffer_size: int = Field(1000, gt=0)
    max_retry_queue_size: int = Field(500, gt=0)
    circuit_breaker_threshold: int = Field(5, gt=0)
    circuit_breaker_reset_timeout_ms: int = Field(30_000, gt=0)
    flush_interval_ms: int = Field(5_000, gt=0)
    max_batch_size: int = Field(100, gt=0)
    retry_delay_ms: int = Field(1_000, gt=0)
    max_retries: int = Field(3, ge=0)
    request_timeout_ms: int = Field(2_000, gt=0)
    metrics_poll_ms: int = Field(5_000, gt=0)

    disabled: bool = Field(
        False,
        validation_alias=AliasChoices("AUDIT_DISABLED", "DISABLE_AUDIT_LOGGING"),
    )
    ignore_query_params: list[str] = Field(default_factory=list)

    @property
    def flush_interval_sec(self) -> float:
        return self.flush_interval_ms / 1000.0

    @property
    def retry_delay_sec(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def circuit_breaker_reset_timeout_sec(self) -> float:
        return self.circuit_breaker_reset_timeout_ms / 1000.0

    @property
    def metrics_poll_sec(self) -> float:
        return self.metrics_poll_ms / 1000.0

    @property
    def request_timeout_sec(self) -> float:
        return self.request_timeout_ms / 1000.0


@lru_cache()
def get_settings() -> PipelineSettings:
    return PipelineSettings()
