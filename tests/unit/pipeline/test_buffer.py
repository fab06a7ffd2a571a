"""
Unit tests for RecordBuffer.
"""

import pytest

from audit_relay.errors import BufferOverflow
from audit_relay.pipeline import RecordBuffer


def test_overflow_keeps_most_recent():
    """maxBufferSize=2; ingest A, B, C -> buffer holds [B, C]."""
    signals = []
    buf = RecordBuffer(capacity=2, on_overflow=signals.append)

    for name in ("A", "B", "C"):
        buf.ingest({"id": name})

    assert buf.size == 2
    assert [r["id"] for r in buf.drain(10)] == ["B", "C"]
    assert len(signals) == 1
    assert isinstance(signals[0], BufferOverflow)
    assert signals[0].count == 1


def test_long_overflow_sequence_retains_tail():
    buf = RecordBuffer(capacity=5)
    for i in range(23):
        buf.ingest({"i": i})

    assert buf.size == 5
    assert [r["i"] for r in buf.drain(100)] == [18, 19, 20, 21, 22]


def test_drain_bounds_and_no_overlap():
    buf = RecordBuffer(capacity=100)
    for i in range(7):
        buf.ingest({"i": i})

    first = buf.drain(3)
    second = buf.drain(3)
    third = buf.drain(3)

    assert [r["i"] for r in first] == [0, 1, 2]
    assert [r["i"] for r in second] == [3, 4, 5]
    assert [r["i"] for r in third] == [6]
    assert buf.drain(3) == []
    assert buf.drain(0) == []


def test_ingest_copies_record():
    """Later producer mutation does not leak into the buffered record."""
    buf = RecordBuffer(capacity=10)
    rec = {"request_id": "r1", "status_code": 200}
    buf.ingest(rec)
    rec["status_code"] = 500

    assert buf.drain(1) == [{"request_id": "r1", "status_code": 200}]


def test_ingest_reports_dropped_count():
    buf = RecordBuffer(capacity=1)
    assert buf.ingest({"i": 0}) == 0
    assert buf.ingest({"i": 1}) == 1


def test_invalid_capacity():
    with pytest.raises(ValueError):
        RecordBuffer(capacity=0)
