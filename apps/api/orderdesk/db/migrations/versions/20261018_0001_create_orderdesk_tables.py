"""create orderdesk tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


order_status = sa.Enum(
    "pending_confirmation", "waiting", "confirmed", "cancelled", "completed", name="order_status"
)
payment_status = sa.Enum("UNPAID", "DP_PAID", "FULL_PAID", name="payment_status")
order_event_type = sa.Enum(
    "CREATED",
    "CONFIRMED",
    "CANCELLED",
    "AUTO_CANCELLED",
    "COMPLETED",
    "PAYMENT_RECORDED",
    name="order_event_type",
)
payment_method = sa.Enum("transfer", "manual", "cash", name="payment_method")
payment_record_status = sa.Enum(
    "confirmed", "rejected", "pending_review", name="payment_record_status"
)
reminder_type = sa.Enum("H-4", "H-3", "H-1", name="reminder_type")
reminder_log_status = sa.Enum("SENT", "SKIPPED", "FAILED", name="reminder_log_status")


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=50), nullable=True),
        sa.Column("customer_chat_id", sa.String(length=64), nullable=True),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("delivery_time", sa.String(length=32), nullable=True),
        sa.Column("delivery_method", sa.String(length=64), nullable=True),
        sa.Column("status", order_status, nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("product_total", sa.Integer(), nullable=False),
        sa.Column("packaging_fee", sa.Integer(), nullable=False),
        sa.Column("delivery_fee", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("paid_amount", sa.Integer(), nullable=False),
        sa.Column("remaining_balance", sa.Integer(), nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_event_date", "orders", ["event_date"], unique=False)

    op.create_table(
        "order_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("type", order_event_type, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_order_events_order_id", "order_events", ["order_id"], unique=False)

    op.create_table(
        "payment_records",
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("amount_input", sa.Integer(), nullable=False),
        sa.Column("amount_confirmed", sa.Integer(), nullable=False),
        sa.Column("method", payment_method, nullable=False),
        sa.Column("status", payment_record_status, nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("proof_reference", sa.String(length=255), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("payment_id"),
    )
    op.create_index("ix_payment_records_order_id", "payment_records", ["order_id"], unique=False)

    op.create_table(
        "reminder_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("reminder_type", reminder_type, nullable=False),
        sa.Column("reminder_date", sa.Date(), nullable=False),
        sa.Column("status", reminder_log_status, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "order_id", "reminder_type", "reminder_date", name="uq_reminder_logs_order_type_date"
        ),
    )
    op.create_index("ix_reminder_logs_order_id", "reminder_logs", ["order_id"], unique=False)
    op.create_index(
        "ix_reminder_logs_reminder_date", "reminder_logs", ["reminder_date"], unique=False
    )

    op.create_table(
        "pending_payment_confirmations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("expected_amount", sa.Integer(), nullable=False),
        sa.Column("candidate_amount", sa.Integer(), nullable=False),
        sa.Column("provenance", sa.String(length=32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("proof_reference", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("actor_id", "order_id", name="uq_pending_confirmation_actor_order"),
    )
    op.create_index(
        "ix_pending_payment_confirmations_expires_at",
        "pending_payment_confirmations",
        ["expires_at"],
        unique=False,
    )

    op.create_table(
        "order_locks",
        sa.Column("lock_key", sa.String(length=128), nullable=False),
        sa.Column("holder", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("lock_key"),
    )

    op.create_table(
        "admin_recipients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("chat_id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("platform", "chat_id", name="uq_admin_recipients_chat"),
    )

    op.create_table(
        "idempotency_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("scope", sa.String(length=255), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column(
            "response_payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("actor_id", "scope", "idempotency_key", name="uq_idem_scope_key"),
    )
    op.create_index(
        "ix_idempotency_records_expires_at", "idempotency_records", ["expires_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_idempotency_records_expires_at", table_name="idempotency_records")
    op.drop_table("idempotency_records")
    op.drop_table("admin_recipients")
    op.drop_table("order_locks")
    op.drop_index(
        "ix_pending_payment_confirmations_expires_at", table_name="pending_payment_confirmations"
    )
    op.drop_table("pending_payment_confirmations")
    op.drop_index("ix_reminder_logs_reminder_date", table_name="reminder_logs")
    op.drop_index("ix_reminder_logs_order_id", table_name="reminder_logs")
    op.drop_table("reminder_logs")
    op.drop_index("ix_payment_records_order_id", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_order_events_order_id", table_name="order_events")
    op.drop_table("order_events")
    op.drop_index("ix_orders_event_date", table_name="orders")
    op.drop_table("orders")

    bind = op.get_bind()
    for enum_type in (
        reminder_log_status,
        reminder_type,
        payment_record_status,
        payment_method,
        order_event_type,
        payment_status,
        order_status,
    ):
        enum_type.drop(bind, checkfirst=True)
