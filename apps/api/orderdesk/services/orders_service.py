import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.clock import Clock, business_today, utc_now_from
from orderdesk.config import settings
from orderdesk.errors import NotFoundError
from orderdesk.models.order import Order, OrderStatus
from orderdesk.models.order_event import OrderEvent, OrderEventType
from orderdesk.observability import log_event, metrics_store
from orderdesk.repositories import OrderRepository, SqlOrderRepository
from orderdesk.schemas.order import OrderCreate
from orderdesk.services.order_lock import OrderLockGuard, order_lock_key
from orderdesk.services.payment_ledger import apply_ledger, compute_total, payment_window
from orderdesk.services.state_machine import (
    ensure_valid_transition,
    event_type_for_status,
    initial_status,
    is_lenient_completion,
)

_ORDER_ID_ATTEMPTS = 3


def append_order_event(
    db: Session,
    order_id: str,
    event_type: OrderEventType,
    message: str,
    payload: dict | None = None,
) -> None:
    db.add(
        OrderEvent(
            order_id=order_id,
            type=event_type,
            message=message,
            payload=payload or {},
        )
    )


def transition_order_status(
    db: Session,
    order: Order,
    next_status: OrderStatus,
    message: str,
    *,
    event_type: OrderEventType | None = None,
    payload: dict | None = None,
) -> Order:
    previous_status = order.status
    ensure_valid_transition(previous_status, next_status)

    order.status = next_status
    append_order_event(
        db,
        order.id,
        event_type or event_type_for_status(next_status),
        message,
        {
            "from_status": previous_status.value,
            "to_status": next_status.value,
            **(payload or {}),
        },
    )
    return order


class OrderService:
    def __init__(
        self,
        db: Session,
        clock: Clock,
        *,
        orders: OrderRepository | None = None,
        guard: OrderLockGuard | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.orders = orders or SqlOrderRepository(db, clock)
        self.guard = guard or OrderLockGuard(db, clock, ttl_s=settings.order_lock_ttl_s)

    def _today(self):
        return business_today(self.clock, settings.business_timezone)

    def _next_order_id(self) -> str:
        prefix = f"{settings.order_id_prefix}/{self._today():%Y%m%d}/"
        return f"{prefix}{self.orders.max_sequence_for(prefix) + 1:06d}"

    def create_order(self, payload: OrderCreate, actor_id: str | None = None) -> Order:
        total = compute_total(payload.product_total, payload.packaging_fee, payload.delivery_fee)
        status = initial_status(
            payload.event_date, self._today(), settings.waiting_threshold_days
        )

        attempt = 0
        while True:
            attempt += 1
            now = utc_now_from(self.clock)
            order = Order(
                id=self._next_order_id(),
                customer_name=payload.customer_name,
                customer_phone=payload.customer_phone,
                customer_chat_id=payload.customer_chat_id,
                event_date=payload.event_date,
                delivery_time=payload.delivery_time,
                delivery_method=payload.delivery_method,
                status=status,
                items=[item.model_dump() for item in payload.items],
                product_total=payload.product_total,
                packaging_fee=payload.packaging_fee,
                delivery_fee=payload.delivery_fee,
                total_amount=total,
                created_at=now,
            )
            apply_ledger(order, 0)
            try:
                self.orders.upsert(order)
                append_order_event(
                    self.db,
                    order.id,
                    OrderEventType.CREATED,
                    "Order created",
                    {"status": status.value, "total_amount": total, "actor_id": actor_id},
                )
                self.db.commit()
            except IntegrityError:
                # Another request took the same daily sequence number
                self.db.rollback()
                if attempt >= _ORDER_ID_ATTEMPTS:
                    raise
                continue

            metrics_store.increment("orders_created_total")
            log_event("order_created", order_id=order.id, actor_id=actor_id, status=status.value)
            return order

    def get_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def list_orders(
        self, status_filter: OrderStatus | None = None, limit: int = 100
    ) -> list[Order]:
        query = select(Order)
        if status_filter:
            query = query.where(Order.status == status_filter)
        return list(self.db.scalars(query.order_by(Order.created_at.desc()).limit(limit)))

    def list_order_events(self, order_id: str) -> list[OrderEvent]:
        self.get_order(order_id)
        events = self.db.scalars(
            select(OrderEvent)
            .where(OrderEvent.order_id == order_id)
            .order_by(OrderEvent.created_at.asc())
        )
        return list(events)

    def confirm_order(self, order_id: str, actor_id: str | None = None) -> Order:
        with self.guard.hold(order_lock_key(order_id)):
            order = self.get_order(order_id)
            today = self._today()
            window = payment_window(order.event_date, today)
            transition_order_status(
                self.db,
                order,
                OrderStatus.CONFIRMED,
                "Order confirmed",
                payload={
                    "actor_id": actor_id,
                    "deposit_allowed": window.deposit_allowed,
                    "full_payment_due": window.full_payment_due.isoformat(),
                },
            )
            order.confirmed_at = utc_now_from(self.clock)
            self.orders.upsert(order)
            self.db.commit()

        log_event(
            "order_confirmed",
            order_id=order_id,
            actor_id=actor_id,
            deposit_allowed=window.deposit_allowed,
        )
        return order

    def cancel_order(self, order_id: str, reason: str, actor_id: str | None = None) -> Order:
        with self.guard.hold(order_lock_key(order_id)):
            order = self.get_order(order_id)
            if order.status == OrderStatus.CANCELLED:
                return order
            self._cancel(order, reason, OrderEventType.CANCELLED, actor_id)
            self.db.commit()

        log_event("order_cancelled", order_id=order_id, actor_id=actor_id, reason=reason)
        return order

    def auto_cancel_order(self, order_id: str, reason: str) -> Order:
        with self.guard.hold(order_lock_key(order_id)):
            order = self.get_order(order_id)
            if order.status == OrderStatus.CANCELLED:
                return order
            self._cancel(order, reason, OrderEventType.AUTO_CANCELLED, actor_id="scheduler")
            self.db.commit()

        metrics_store.increment("orders_auto_cancelled_total")
        log_event("order_auto_cancelled", order_id=order_id, reason=reason)
        return order

    def _cancel(
        self,
        order: Order,
        reason: str,
        event_type: OrderEventType,
        actor_id: str | None,
    ) -> None:
        transition_order_status(
            self.db,
            order,
            OrderStatus.CANCELLED,
            f"Order cancelled: {reason}",
            event_type=event_type,
            payload={"reason": reason, "actor_id": actor_id},
        )
        order.cancel_reason = reason
        order.cancelled_at = utc_now_from(self.clock)
        self.orders.upsert(order)

    def complete_order(self, order_id: str, actor_id: str | None = None) -> Order:
        with self.guard.hold(order_lock_key(order_id)):
            order = self.get_order(order_id)
            if is_lenient_completion(order.status, OrderStatus.COMPLETED):
                log_event(
                    "order_completed_from_unexpected_state",
                    order_id=order_id,
                    actor_id=actor_id,
                    level=logging.WARNING,
                    status=order.status.value,
                )
            transition_order_status(
                self.db,
                order,
                OrderStatus.COMPLETED,
                "Order completed",
                payload={"actor_id": actor_id},
            )
            order.completed_at = utc_now_from(self.clock)
            self.orders.upsert(order)
            self.db.commit()

        log_event("order_completed", order_id=order_id, actor_id=actor_id)
        return order
