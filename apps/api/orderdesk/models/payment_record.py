import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orderdesk.clock import now_utc
from orderdesk.db.base import Base


class PaymentRecordStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    PENDING_REVIEW = "pending_review"


class PaymentMethod(str, enum.Enum):
    TRANSFER = "transfer"
    MANUAL = "manual"
    CASH = "cash"


class PaymentRecord(Base):
    """Immutable ledger entry; rows are inserted and never updated."""

    __tablename__ = "payment_records"

    payment_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount_input: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_confirmed: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentMethod.TRANSFER,
    )
    status: Mapped[PaymentRecordStatus] = mapped_column(
        Enum(
            PaymentRecordStatus,
            name="payment_record_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    proof_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
