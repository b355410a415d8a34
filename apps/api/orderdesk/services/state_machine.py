from datetime import date

from orderdesk.errors import StateError
from orderdesk.models.order import OrderStatus
from orderdesk.models.order_event import OrderEventType

ORDER_STATE_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING_CONFIRMATION: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.WAITING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.COMPLETED: set(),
}

# Operators sometimes mark an order done without confirming it first
LENIENT_COMPLETION_FROM = frozenset({OrderStatus.PENDING_CONFIRMATION, OrderStatus.WAITING})

_EVENT_TYPE_FOR_STATUS = {
    OrderStatus.CONFIRMED: OrderEventType.CONFIRMED,
    OrderStatus.CANCELLED: OrderEventType.CANCELLED,
    OrderStatus.COMPLETED: OrderEventType.COMPLETED,
}


def initial_status(event_date: date, today: date, waiting_threshold_days: int) -> OrderStatus:
    if (event_date - today).days > waiting_threshold_days:
        return OrderStatus.WAITING
    return OrderStatus.PENDING_CONFIRMATION


def is_lenient_completion(current: OrderStatus, next_status: OrderStatus) -> bool:
    return next_status == OrderStatus.COMPLETED and current in LENIENT_COMPLETION_FROM


def ensure_valid_transition(current: OrderStatus, next_status: OrderStatus) -> None:
    if is_lenient_completion(current, next_status):
        return

    allowed = ORDER_STATE_TRANSITIONS.get(current, set())
    if next_status not in allowed:
        raise StateError(
            f"Invalid state transition: {current.value} -> {next_status.value}",
            current=current.value,
            target=next_status.value,
        )


def event_type_for_status(status_value: OrderStatus) -> OrderEventType:
    return _EVENT_TYPE_FOR_STATUS[status_value]
