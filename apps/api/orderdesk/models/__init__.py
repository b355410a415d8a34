# Import SQLAlchemy models so they register on Base.metadata
from orderdesk.models.admin_recipient import AdminRecipient  # noqa: F401
from orderdesk.models.idempotency_record import IdempotencyRecord  # noqa: F401
from orderdesk.models.order import Order, OrderStatus, PaymentStatus  # noqa: F401
from orderdesk.models.order_event import OrderEvent, OrderEventType  # noqa: F401
from orderdesk.models.order_lock import OrderLock  # noqa: F401
from orderdesk.models.payment_record import PaymentRecord, PaymentRecordStatus  # noqa: F401
from orderdesk.models.pending_confirmation import PendingPaymentConfirmation  # noqa: F401
from orderdesk.models.reminder_log import (  # noqa: F401
    ReminderLogEntry,
    ReminderLogStatus,
    ReminderType,
)
