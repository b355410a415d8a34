import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from orderdesk.clock import now_utc
from orderdesk.db.base import Base


class ReminderType(str, enum.Enum):
    H4_PAYMENT = "H-4"
    H3_PROCUREMENT = "H-3"
    H1_PREPARATION = "H-1"


class ReminderLogStatus(str, enum.Enum):
    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class ReminderLogEntry(Base):
    """One decision per (order, reminder type, evaluation day). Append-only."""

    __tablename__ = "reminder_logs"
    __table_args__ = (
        UniqueConstraint(
            "order_id", "reminder_type", "reminder_date", name="uq_reminder_logs_order_type_date"
        ),
        Index("ix_reminder_logs_reminder_date", "reminder_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # No foreign key: the log outlives order rows and is read as a plain event stream
    order_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reminder_type: Mapped[ReminderType] = mapped_column(
        Enum(ReminderType, name="reminder_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    reminder_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ReminderLogStatus] = mapped_column(
        Enum(ReminderLogStatus, name="reminder_log_status"), nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
