import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.clock import Clock, utc_now_from
from orderdesk.errors import LockContention
from orderdesk.models.order_lock import OrderLock
from orderdesk.observability import log_event, metrics_store

DEFAULT_LOCK_TTL_S = 60


def order_lock_key(order_id: str) -> str:
    return f"order:{order_id}"


def reminder_run_lock_key(run_date) -> str:
    return f"reminder-run:{run_date.isoformat()}"


class OrderLockGuard:
    """Short-lived, TTL-bounded exclusion stored in ``order_locks``.

    The primary key on ``lock_key`` decides races between concurrent
    inserts. A holder that dies blocks others for at most ``ttl_s``.
    """

    def __init__(self, db: Session, clock: Clock, ttl_s: int = DEFAULT_LOCK_TTL_S) -> None:
        self.db = db
        self.clock = clock
        self.ttl_s = ttl_s

    def acquire(self, key: str, holder: str | None = None) -> bool:
        now = utc_now_from(self.clock)
        expired = self.db.execute(
            delete(OrderLock)
            .where(OrderLock.lock_key == key, OrderLock.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        if expired.rowcount:
            log_event("order_lock_expired_replaced", lock_key=key)

        self.db.add(
            OrderLock(
                lock_key=key,
                holder=holder,
                created_at=now,
                expires_at=now + timedelta(seconds=self.ttl_s),
            )
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

    def release(self, key: str, holder: str | None = None) -> None:
        query = delete(OrderLock).where(OrderLock.lock_key == key)
        if holder is not None:
            query = query.where(OrderLock.holder == holder)
        self.db.execute(query)
        self.db.commit()

    @contextmanager
    def hold(self, key: str) -> Iterator[str]:
        holder = uuid.uuid4().hex
        if not self.acquire(key, holder):
            metrics_store.increment("order_lock_contention_total")
            log_event("order_lock_contention", lock_key=key)
            raise LockContention(key)
        try:
            yield holder
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.release(key, holder)
