"""Daily reminder and auto-cancellation run.

The reminder log is the only record of what has been done. Each run reads
the orders and the whole log once, decides per order, and appends at most
one log row per order. Running again on the same day finds every decision
already logged and sends nothing.

Decision order for an order ``days_diff`` days before its event:

* H-3 and not fully paid: cancel the order, tell the customer, no log row.
* any SENT row ever for the order: skip, no log row.
* already decided today for this reminder type: skip, no log row.
* H-4 and fully paid: SKIPPED row.
* otherwise broadcast to every active admin and log SENT or FAILED.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date

from sqlalchemy.orm import Session

from orderdesk.clock import Clock, business_today, days_between, utc_now_from
from orderdesk.config import settings
from orderdesk.errors import DeliveryFailure, DuplicateReminderEntry, TotalDeliveryFailure
from orderdesk.integrations.telegram_client import MessageSender
from orderdesk.models.order import Order, PaymentStatus
from orderdesk.models.reminder_log import ReminderLogEntry, ReminderLogStatus, ReminderType
from orderdesk.observability import log_event, metrics_store, observe_timing
from orderdesk.repositories import OrderRepository, ReminderLog, SqlOrderRepository, SqlReminderLog
from orderdesk.services.order_lock import OrderLockGuard, reminder_run_lock_key
from orderdesk.services.orders_service import OrderService
from orderdesk.services.recipients import RecipientDirectory
from orderdesk.services.reminder_messages import render_auto_cancel_notice, render_reminder

REMINDER_TYPE_BY_DAYS: dict[int, ReminderType] = {
    4: ReminderType.H4_PAYMENT,
    3: ReminderType.H3_PROCUREMENT,
    1: ReminderType.H1_PREPARATION,
}
AUTO_CANCEL_REASON = "Payment not received by H-3"
NOTES_MAX_LENGTH = 200

SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"
AUTO_CANCELLED = "auto_cancelled"
ALREADY_PROCESSED = "already_processed"


@dataclass
class ReminderRunSummary:
    run_date: date
    eligible: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    auto_cancelled: int = 0
    already_processed: int = 0

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)


@dataclass
class BroadcastResult:
    delivered: int
    failures: list[DeliveryFailure]


class ReminderScheduler:
    def __init__(
        self,
        db: Session,
        clock: Clock,
        *,
        sender: MessageSender,
        recipients: RecipientDirectory,
        orders: OrderRepository | None = None,
        reminder_log: ReminderLog | None = None,
        order_service: OrderService | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.sender = sender
        self.recipients = recipients
        self.orders = orders or SqlOrderRepository(db, clock)
        self.reminder_log = reminder_log or SqlReminderLog(db)
        self.order_service = order_service or OrderService(db, clock, orders=self.orders)

    def run(self, as_of: date | None = None) -> ReminderRunSummary:
        today = as_of or business_today(self.clock, settings.business_timezone)
        run_guard = OrderLockGuard(self.db, self.clock, ttl_s=settings.reminder_run_lock_ttl_s)

        with run_guard.hold(reminder_run_lock_key(today)):
            with observe_timing("reminder_run_duration_seconds"):
                summary = self._run(today)

        metrics_store.increment("reminder_runs_total")
        log_event("reminder_run_completed", **asdict(summary))
        return summary

    def _run(self, today: date) -> ReminderRunSummary:
        summary = ReminderRunSummary(run_date=today)

        eligible: list[tuple[Order, ReminderType]] = []
        for order in self.orders.list_all(settings.reminder_order_limit):
            if order.is_terminal:
                continue
            reminder_type = REMINDER_TYPE_BY_DAYS.get(days_between(today, order.event_date))
            if reminder_type is not None:
                eligible.append((order, reminder_type))
        summary.eligible = len(eligible)

        entries = self.reminder_log.list_all()
        ever_sent = {entry.order_id for entry in entries if entry.status == ReminderLogStatus.SENT}
        decided_today = {
            (entry.order_id, entry.reminder_type)
            for entry in entries
            if entry.reminder_date == today
        }

        for order, reminder_type in eligible:
            order_id = order.id
            try:
                outcome = self._process(order, reminder_type, today, ever_sent, decided_today)
            except DuplicateReminderEntry:
                log_event(
                    "reminder_already_logged_concurrently",
                    order_id=order_id,
                    reminder_type=reminder_type.value,
                )
                outcome = ALREADY_PROCESSED
            except Exception:
                self.db.rollback()
                log_event(
                    "reminder_processing_failed",
                    order_id=order_id,
                    reminder_type=reminder_type.value,
                    level=logging.ERROR,
                    exc_info=True,
                )
                outcome = FAILED
            summary.count(outcome)

        return summary

    def _process(
        self,
        order: Order,
        reminder_type: ReminderType,
        today: date,
        ever_sent: set[str],
        decided_today: set[tuple[str, ReminderType]],
    ) -> str:
        if (
            reminder_type == ReminderType.H3_PROCUREMENT
            and order.payment_status != PaymentStatus.FULL_PAID
        ):
            self._auto_cancel(order)
            return AUTO_CANCELLED

        if order.id in ever_sent:
            return SKIPPED
        if (order.id, reminder_type) in decided_today:
            return ALREADY_PROCESSED

        if (
            reminder_type == ReminderType.H4_PAYMENT
            and order.payment_status == PaymentStatus.FULL_PAID
        ):
            self._append(
                order.id,
                reminder_type,
                today,
                ReminderLogStatus.SKIPPED,
                "Skipped because fully paid",
            )
            return SKIPPED

        recipients = self.recipients.list_active_admins()
        if not recipients:
            self._append(
                order.id,
                reminder_type,
                today,
                ReminderLogStatus.FAILED,
                "No admin recipients found",
                attempts=1,
            )
            metrics_store.increment("reminders_failed_total")
            return FAILED

        result = self._broadcast(recipients, render_reminder(reminder_type, order))
        if result.delivered:
            notes = f"Sent to {result.delivered} admin(s)"
            if result.failures:
                notes += f", failed {len(result.failures)}"
            self._append(
                order.id, reminder_type, today, ReminderLogStatus.SENT, notes, attempts=1, sent=True
            )
            metrics_store.increment("reminders_sent_total")
            log_event(
                "reminder_sent", order_id=order.id, reminder_type=reminder_type.value, notes=notes
            )
            return SENT

        failure = TotalDeliveryFailure(
            reason=f"Delivery failed for all admins: {result.failures[0].reason}",
            attempted=len(recipients),
            failed=len(result.failures),
        )
        self._append(
            order.id, reminder_type, today, ReminderLogStatus.FAILED, str(failure), attempts=1
        )
        metrics_store.increment("reminders_failed_total")
        log_event(
            "reminder_delivery_failed",
            order_id=order.id,
            reminder_type=reminder_type.value,
            level=logging.WARNING,
            reason=failure.reason,
        )
        return FAILED

    def _auto_cancel(self, order: Order) -> None:
        cancelled = self.order_service.auto_cancel_order(order.id, AUTO_CANCEL_REASON)
        if not cancelled.customer_chat_id:
            return
        try:
            self.sender.send(cancelled.customer_chat_id, render_auto_cancel_notice(cancelled))
        except DeliveryFailure as failure:
            log_event(
                "auto_cancel_notice_failed",
                order_id=order.id,
                level=logging.WARNING,
                reason=failure.reason,
            )

    def _broadcast(self, recipients: list[str], text: str) -> BroadcastResult:
        delivered = 0
        failures: list[DeliveryFailure] = []
        for recipient_id in recipients:
            try:
                self.sender.send(recipient_id, text)
            except DeliveryFailure as failure:
                failures.append(failure)
                metrics_store.increment("reminder_recipient_failures_total")
                continue
            delivered += 1
        return BroadcastResult(delivered=delivered, failures=failures)

    def _append(
        self,
        order_id: str,
        reminder_type: ReminderType,
        today: date,
        status: ReminderLogStatus,
        notes: str,
        *,
        attempts: int = 0,
        sent: bool = False,
    ) -> ReminderLogEntry:
        now = utc_now_from(self.clock)
        entry = ReminderLogEntry(
            order_id=order_id,
            reminder_type=reminder_type,
            reminder_date=today,
            status=status,
            attempts=attempts,
            sent_at=now if sent else None,
            last_attempt_at=now if attempts else None,
            notes=notes[:NOTES_MAX_LENGTH],
            created_at=now,
        )
        self.reminder_log.append_entry(entry)
        self.db.commit()
        return entry
