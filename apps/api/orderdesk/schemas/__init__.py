from orderdesk.schemas.order import (
    OrderCancelRequest,
    OrderCreate,
    OrderEventListResponse,
    OrderEventResponse,
    OrderItem,
    OrderListResponse,
    OrderResponse,
)
from orderdesk.schemas.payment import (
    PaymentConfirmationRequest,
    PaymentOutcomeResponse,
    PaymentRecordListResponse,
    PaymentRecordResponse,
    PaymentRejectRequest,
    PaymentSubmitRequest,
)
from orderdesk.schemas.reminders import (
    ReminderLogEntryResponse,
    ReminderLogListResponse,
    ReminderRunRequest,
    ReminderRunResponse,
)

__all__ = [
    "OrderItem",
    "OrderCreate",
    "OrderResponse",
    "OrderListResponse",
    "OrderCancelRequest",
    "OrderEventResponse",
    "OrderEventListResponse",
    "PaymentSubmitRequest",
    "PaymentRejectRequest",
    "PaymentConfirmationRequest",
    "PaymentRecordResponse",
    "PaymentRecordListResponse",
    "PaymentOutcomeResponse",
    "ReminderRunRequest",
    "ReminderRunResponse",
    "ReminderLogEntryResponse",
    "ReminderLogListResponse",
]
