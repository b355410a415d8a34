import logging
from datetime import timedelta

import pytest

from orderdesk.errors import LockContention, NotFoundError, StateError
from orderdesk.models.order import OrderStatus, PaymentStatus
from orderdesk.models.order_event import OrderEventType
from orderdesk.observability import metrics_store
from orderdesk.schemas.order import OrderCreate
from orderdesk.services.order_lock import OrderLockGuard, order_lock_key


def test_create_order_assigns_daily_sequence_and_ledger(make_order):
    first = make_order(packaging_fee=10_000, delivery_fee=15_000)
    second = make_order()

    assert first.id == "ORD/20261018/000001"
    assert second.id == "ORD/20261018/000002"
    assert first.total_amount == 265_000
    assert first.paid_amount == 0
    assert first.remaining_balance == 265_000
    assert first.payment_status == PaymentStatus.UNPAID
    assert first.minimum_deposit == 132_500
    assert metrics_store.snapshot().counters["orders_created_total"] == 2


def test_create_order_waits_when_event_is_far(make_order):
    assert make_order(days_until_event=6).status == OrderStatus.PENDING_CONFIRMATION
    assert make_order(days_until_event=10).status == OrderStatus.WAITING


def test_create_order_appends_created_event(order_service, make_order):
    order = make_order()

    events = order_service.list_order_events(order.id)

    assert [event.type for event in events] == [OrderEventType.CREATED]
    assert events[0].payload["total_amount"] == 240_000


def test_create_order_rejects_empty_items(clock):
    with pytest.raises(ValueError):
        OrderCreate(event_date=clock.today(), items=[], product_total=10_000)


def test_confirm_records_payment_window(order_service, make_order, clock):
    order = make_order(days_until_event=6)

    confirmed = order_service.confirm_order(order.id, actor_id="admin-1")

    assert confirmed.status == OrderStatus.CONFIRMED
    assert confirmed.confirmed_at is not None
    event = order_service.list_order_events(order.id)[-1]
    assert event.type == OrderEventType.CONFIRMED
    assert event.payload["deposit_allowed"] is True
    assert event.payload["full_payment_due"] == (clock.today() + timedelta(days=3)).isoformat()


def test_mutations_stamp_timestamps_from_injected_clock(order_service, make_order, clock):
    order = make_order()
    clock.advance(hours=2)

    confirmed = order_service.confirm_order(order.id, actor_id="admin-1")

    assert confirmed.confirmed_at == clock.now()
    assert confirmed.updated_at == clock.now()


def test_confirm_close_to_event_requires_full_payment(order_service, make_order, clock):
    order = make_order(days_until_event=3)

    order_service.confirm_order(order.id)

    event = order_service.list_order_events(order.id)[-1]
    assert event.payload["deposit_allowed"] is False
    assert event.payload["full_payment_due"] == clock.today().isoformat()


def test_confirm_twice_is_rejected(order_service, make_order):
    order = make_order()
    order_service.confirm_order(order.id)

    with pytest.raises(StateError):
        order_service.confirm_order(order.id)


def test_cancel_is_idempotent(order_service, make_order):
    order = make_order()

    order_service.cancel_order(order.id, "Customer changed plans", actor_id="admin-1")
    again = order_service.cancel_order(order.id, "Second click", actor_id="admin-1")

    assert again.status == OrderStatus.CANCELLED
    assert again.cancel_reason == "Customer changed plans"
    types = [event.type for event in order_service.list_order_events(order.id)]
    assert types == [OrderEventType.CREATED, OrderEventType.CANCELLED]


def test_cancelled_order_cannot_be_confirmed_or_completed(order_service, make_order):
    order = make_order()
    order_service.cancel_order(order.id, "No longer needed")

    with pytest.raises(StateError):
        order_service.confirm_order(order.id)
    with pytest.raises(StateError):
        order_service.complete_order(order.id)


def test_auto_cancel_uses_dedicated_event_type(order_service, make_order):
    order = make_order()

    cancelled = order_service.auto_cancel_order(order.id, "Payment not received by H-3")

    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    event = order_service.list_order_events(order.id)[-1]
    assert event.type == OrderEventType.AUTO_CANCELLED
    assert event.payload["actor_id"] == "scheduler"
    assert metrics_store.snapshot().counters["orders_auto_cancelled_total"] == 1


def test_complete_from_confirmed(order_service, make_order):
    order = make_order()
    order_service.confirm_order(order.id)

    completed = order_service.complete_order(order.id, actor_id="staff-1")

    assert completed.status == OrderStatus.COMPLETED
    assert completed.completed_at is not None


def test_complete_without_confirmation_is_allowed_with_warning(order_service, make_order, caplog):
    order = make_order()

    with caplog.at_level(logging.WARNING, logger="orderdesk"):
        completed = order_service.complete_order(order.id)

    assert completed.status == OrderStatus.COMPLETED
    assert any(
        record.getMessage() == "order_completed_from_unexpected_state" for record in caplog.records
    )


def test_get_unknown_order_raises_not_found(order_service):
    with pytest.raises(NotFoundError):
        order_service.get_order("ORD/20261018/999999")


def test_list_orders_filters_by_status(order_service, make_order):
    kept = make_order()
    cancelled = make_order()
    order_service.cancel_order(cancelled.id, "Duplicate")

    pending = order_service.list_orders(OrderStatus.PENDING_CONFIRMATION)

    assert [order.id for order in pending] == [kept.id]
    assert len(order_service.list_orders()) == 2


def test_mutation_under_contention_leaves_order_untouched(
    db_session, clock, order_service, make_order
):
    order = make_order()
    OrderLockGuard(db_session, clock).acquire(order_lock_key(order.id), holder="other-request")

    with pytest.raises(LockContention):
        order_service.confirm_order(order.id)

    assert order_service.get_order(order.id).status == OrderStatus.PENDING_CONFIRMATION
