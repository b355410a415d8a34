from datetime import date

import pytest
from sqlalchemy import select

from orderdesk.errors import LockContention
from orderdesk.models.order_lock import OrderLock
from orderdesk.observability import metrics_store
from orderdesk.services.order_lock import OrderLockGuard, order_lock_key, reminder_run_lock_key


def test_lock_keys():
    assert order_lock_key("ORD/20261018/000001") == "order:ORD/20261018/000001"
    assert reminder_run_lock_key(date(2026, 10, 18)) == "reminder-run:2026-10-18"


def test_second_acquire_fails_until_released(db_session, clock):
    guard = OrderLockGuard(db_session, clock, ttl_s=60)

    assert guard.acquire("order:A", holder="first") is True
    assert guard.acquire("order:A", holder="second") is False

    guard.release("order:A", holder="first")
    assert guard.acquire("order:A", holder="second") is True


def test_expired_lock_is_replaced(db_session, clock):
    guard = OrderLockGuard(db_session, clock, ttl_s=60)
    assert guard.acquire("order:A", holder="crashed") is True

    clock.advance(seconds=61)

    assert guard.acquire("order:A", holder="next") is True
    lock = db_session.scalar(select(OrderLock).where(OrderLock.lock_key == "order:A"))
    assert lock.holder == "next"


def test_release_ignores_locks_held_by_someone_else(db_session, clock):
    guard = OrderLockGuard(db_session, clock)
    guard.acquire("order:A", holder="owner")

    guard.release("order:A", holder="intruder")

    assert guard.acquire("order:A", holder="other") is False


def test_hold_raises_contention_and_counts_it(db_session, clock):
    guard = OrderLockGuard(db_session, clock)
    guard.acquire("order:A", holder="owner")

    with pytest.raises(LockContention) as exc_info:
        with guard.hold("order:A"):
            pass

    assert exc_info.value.status_code == 423
    assert metrics_store.snapshot().counters["order_lock_contention_total"] == 1


def test_hold_releases_after_body_raises(db_session, clock):
    guard = OrderLockGuard(db_session, clock)

    with pytest.raises(ValueError):
        with guard.hold("order:A"):
            raise ValueError("boom")

    assert db_session.scalar(select(OrderLock)) is None
    with guard.hold("order:A") as holder:
        assert holder
