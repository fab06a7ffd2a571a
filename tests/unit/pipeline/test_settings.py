"""
Unit tests for PipelineSettings.
"""

import pytest
from pydantic import ValidationError

from audit_relay.pipeline import PipelineSettings


def test_defaults(settings_factory):
    s = settings_factory()
    assert s.max_buffer_size == 1000
    assert s.max_retry_queue_size == 500
    assert s.circuit_breaker_threshold == 5
    assert s.circuit_breaker_reset_timeout_ms == 30_000
    assert s.flush_interval_ms == 5_000
    assert s.max_batch_size == 100
    assert s.retry_delay_ms == 1_000
    assert s.max_retries == 3
    assert s.request_timeout_sec == 2.0
    assert s.disabled is False


def test_endpoint_required(settings_factory, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    with pytest.raises(ValidationError):
        PipelineSettings()


def test_env_overrides(settings_factory, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AUDIT_ENDPOINT", "http://env.test/audit")
    monkeypatch.setenv("AUDIT_MAX_BATCH_SIZE", "25")
    monkeypatch.setenv("AUDIT_FLUSH_INTERVAL_MS", "250")

    s = PipelineSettings()
    assert s.endpoint == "http://env.test/audit"
    assert s.max_batch_size == 25
    assert s.flush_interval_sec == 0.25


@pytest.mark.parametrize("var", ["DISABLE_AUDIT_LOGGING", "AUDIT_DISABLED"])
@pytest.mark.parametrize("value", ["true", "1"])
def test_kill_switch(settings_factory, monkeypatch, var, value):
    monkeypatch.setenv(var, value)
    assert settings_factory().disabled is True


@pytest.mark.parametrize("field", ["max_buffer_size", "max_batch_size", "flush_interval_ms"])
def test_rejects_non_positive(settings_factory, field):
    with pytest.raises(ValidationError):
        settings_factory(**{field: 0})
