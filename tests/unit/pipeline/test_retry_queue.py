"""
Unit tests for RetryQueue and RetryEntry.
"""

import pytest

from audit_relay.pipeline import RetryEntry, RetryQueue


def test_fifo_order():
    q = RetryQueue(capacity=10)
    for i in range(3):
        assert q.offer(RetryEntry(batch=[{"i": i}]))

    assert [q.pop().batch[0]["i"] for _ in range(3)] == [0, 1, 2]
    assert q.pop() is None


def test_rejects_when_full_without_evicting():
    q = RetryQueue(capacity=2)
    assert q.offer(RetryEntry(batch=[{"i": 0}]))
    assert q.offer(RetryEntry(batch=[{"i": 1}]))
    assert not q.offer(RetryEntry(batch=[{"i": 2}]))

    assert q.size == 2
    assert q.pop().batch == [{"i": 0}]


def test_next_attempt_increments():
    e = RetryEntry(batch=[{"i": 0}])
    assert e.attempts == 1
    e2 = e.next_attempt()
    assert e2.attempts == 2
    assert e2.batch is e.batch
    assert e.attempts == 1


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryEntry(batch=[], attempts=0)
