from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.clock import Clock, utc_now_from
from orderdesk.errors import DuplicateReminderEntry, NotFoundError
from orderdesk.models.admin_recipient import AdminRecipient
from orderdesk.models.order import Order, OrderStatus
from orderdesk.models.payment_record import PaymentRecord
from orderdesk.models.reminder_log import ReminderLogEntry


class OrderRepository(Protocol):
    def get(self, order_id: str) -> Order | None: ...

    def list_all(self, limit: int) -> list[Order]: ...

    def upsert(self, order: Order) -> Order: ...

    def update_status(self, order_id: str, status: OrderStatus, **fields: object) -> Order: ...

    def max_sequence_for(self, prefix: str) -> int: ...


class ReminderLog(Protocol):
    def append_entry(self, entry: ReminderLogEntry) -> ReminderLogEntry: ...

    def list_all(self) -> list[ReminderLogEntry]: ...

    def list_for_date(self, reminder_date: date) -> list[ReminderLogEntry]: ...


class PaymentRecordStore(Protocol):
    def append(self, record: PaymentRecord) -> PaymentRecord: ...

    def list_by_order(self, order_id: str) -> list[PaymentRecord]: ...


class AdminRoster(Protocol):
    def list_active_admins(self) -> list[str]: ...


class SqlOrderRepository:
    def __init__(self, db: Session, clock: Clock) -> None:
        self.db = db
        self.clock = clock

    def get(self, order_id: str) -> Order | None:
        return self.db.get(Order, order_id, populate_existing=True)

    def list_all(self, limit: int) -> list[Order]:
        query = select(Order).order_by(Order.created_at.asc(), Order.id.asc()).limit(limit)
        return list(self.db.scalars(query))

    def upsert(self, order: Order) -> Order:
        order.updated_at = utc_now_from(self.clock)
        self.db.add(order)
        self.db.flush()
        return order

    def update_status(self, order_id: str, status: OrderStatus, **fields: object) -> Order:
        order = self.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        order.status = status
        for name, value in fields.items():
            setattr(order, name, value)
        return self.upsert(order)

    def max_sequence_for(self, prefix: str) -> int:
        # Sequences are zero padded, so the lexically largest id is the latest
        latest = self.db.scalar(
            select(Order.id).where(Order.id.like(f"{prefix}%")).order_by(Order.id.desc()).limit(1)
        )
        if latest is None:
            return 0
        try:
            return int(latest.rsplit("/", 1)[-1])
        except ValueError:
            return 0


class SqlReminderLog:
    def __init__(self, db: Session) -> None:
        self.db = db

    def append_entry(self, entry: ReminderLogEntry) -> ReminderLogEntry:
        self.db.add(entry)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateReminderEntry(
                f"Reminder {entry.reminder_type.value} for {entry.order_id} "
                f"on {entry.reminder_date.isoformat()} already logged"
            ) from exc
        return entry

    def list_all(self) -> list[ReminderLogEntry]:
        return list(self.db.scalars(select(ReminderLogEntry).order_by(ReminderLogEntry.created_at)))

    def list_for_date(self, reminder_date: date) -> list[ReminderLogEntry]:
        query = (
            select(ReminderLogEntry)
            .where(ReminderLogEntry.reminder_date == reminder_date)
            .order_by(ReminderLogEntry.created_at)
        )
        return list(self.db.scalars(query))


class SqlPaymentRecordStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def append(self, record: PaymentRecord) -> PaymentRecord:
        self.db.add(record)
        self.db.flush()
        return record

    def list_by_order(self, order_id: str) -> list[PaymentRecord]:
        query = (
            select(PaymentRecord)
            .where(PaymentRecord.order_id == order_id)
            .order_by(PaymentRecord.created_at, PaymentRecord.payment_id)
        )
        return list(self.db.scalars(query))


class SqlAdminRoster:
    def __init__(self, db: Session, platform: str = "telegram") -> None:
        self.db = db
        self.platform = platform

    def list_active_admins(self) -> list[str]:
        query = select(AdminRecipient.chat_id).where(
            AdminRecipient.platform == self.platform,
            AdminRecipient.role == "admin",
            AdminRecipient.is_active.is_(True),
        )
        return list(self.db.scalars(query.order_by(AdminRecipient.created_at)))
