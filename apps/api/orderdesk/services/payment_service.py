import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.clock import Clock, business_today, ensure_aware, utc_now_from
from orderdesk.config import settings
from orderdesk.errors import (
    NotFoundError,
    PendingConfirmationNotFound,
    ReconciliationAmbiguous,
    StateError,
)
from orderdesk.integrations.amount_extractor import AmountExtractor
from orderdesk.integrations.errors import IntegrationError
from orderdesk.models.order import Order, PaymentStatus
from orderdesk.models.order_event import OrderEventType
from orderdesk.models.payment_record import PaymentMethod, PaymentRecord, PaymentRecordStatus
from orderdesk.models.pending_confirmation import PendingPaymentConfirmation
from orderdesk.observability import log_event, metrics_store
from orderdesk.repositories import (
    OrderRepository,
    PaymentRecordStore,
    SqlOrderRepository,
    SqlPaymentRecordStore,
)
from orderdesk.services.order_lock import OrderLockGuard, order_lock_key
from orderdesk.services.orders_service import append_order_event
from orderdesk.services.payment_ledger import (
    apply_ledger,
    minimum_deposit,
    paid_from_records,
    parse_amount,
    payment_window,
)
from orderdesk.services.reconciliation import AmountCandidate, make_candidate, reconcile

ACCEPTED = "accepted"
PENDING_CONFIRMATION = "pending_confirmation"


@dataclass
class PaymentOutcome:
    status: str
    order: Order
    payment: PaymentRecord | None = None
    pending: PendingPaymentConfirmation | None = None


class PaymentService:
    def __init__(
        self,
        db: Session,
        clock: Clock,
        *,
        extractor: AmountExtractor,
        orders: OrderRepository | None = None,
        payments: PaymentRecordStore | None = None,
        guard: OrderLockGuard | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.extractor = extractor
        self.orders = orders or SqlOrderRepository(db, clock)
        self.payments = payments or SqlPaymentRecordStore(db)
        self.guard = guard or OrderLockGuard(db, clock, ttl_s=settings.order_lock_ttl_s)

    def _get_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def _ensure_payable(self, order: Order) -> None:
        if order.is_terminal:
            raise StateError(
                f"Cannot record payment for {order.status.value} order {order.id}",
                current=order.status.value,
            )

    def _next_payment_id(self) -> str:
        stamp = self.clock.now().strftime("%Y%m%d/%H%M%S")
        while True:
            payment_id = f"PAY/{stamp}/{secrets.randbelow(10_000):04d}"
            if self.db.get(PaymentRecord, payment_id) is None:
                return payment_id

    def _purge_expired_pending(self, now: datetime) -> None:
        result = self.db.execute(
            delete(PendingPaymentConfirmation)
            .where(PendingPaymentConfirmation.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            self.db.commit()
            metrics_store.increment("pending_confirmations_expired_total", int(result.rowcount))

    def _collect_candidates(
        self,
        order_id: str,
        claimed_amount: int | None,
        proof_reference: str | None,
        actor_id: str,
    ) -> list[AmountCandidate]:
        candidates: list[AmountCandidate] = []
        if claimed_amount is not None:
            candidates.append(make_candidate(claimed_amount, "claimed"))
        if proof_reference:
            try:
                candidates.extend(self.extractor.extract(proof_reference))
            except IntegrationError as err:
                metrics_store.increment("amount_extraction_failed_total")
                log_event(
                    "amount_extraction_failed",
                    order_id=order_id,
                    actor_id=actor_id,
                    level=logging.WARNING,
                    error=str(err),
                )
        return candidates

    def record_payment(
        self,
        order_id: str,
        *,
        actor_id: str,
        claimed_amount: int | str | None = None,
        proof_reference: str | None = None,
        method: PaymentMethod = PaymentMethod.TRANSFER,
    ) -> PaymentOutcome:
        order = self._get_order(order_id)
        self._ensure_payable(order)
        if order.payment_status == PaymentStatus.FULL_PAID:
            raise StateError(f"Order {order_id} is already fully paid", current=order.status.value)
        claimed = parse_amount(claimed_amount) if claimed_amount is not None else None

        now = utc_now_from(self.clock)
        self._purge_expired_pending(now)

        expected = order.remaining_balance
        candidates = self._collect_candidates(order_id, claimed, proof_reference, actor_id)

        also_acceptable: tuple[int, ...] = ()
        today = business_today(self.clock, settings.business_timezone)
        if order.paid_amount == 0 and payment_window(order.event_date, today).deposit_allowed:
            also_acceptable = (minimum_deposit(order.total_amount),)

        try:
            decision = reconcile(
                expected,
                candidates,
                relative_tolerance=settings.reconcile_relative_tolerance,
                absolute_tolerance=settings.reconcile_absolute_tolerance,
                also_acceptable=also_acceptable,
            )
        except ReconciliationAmbiguous as ambiguous:
            pending = self._store_pending(
                actor_id=actor_id,
                order_id=order_id,
                ambiguous=ambiguous,
                method=method,
                proof_reference=proof_reference,
                now=now,
            )
            metrics_store.increment("payments_pending_confirmation_total")
            log_event(
                "payment_pending_confirmation",
                order_id=order_id,
                actor_id=actor_id,
                expected_amount=ambiguous.expected_amount,
                candidate_amount=ambiguous.candidate_amount,
                provenance=ambiguous.provenance,
            )
            return PaymentOutcome(status=PENDING_CONFIRMATION, order=order, pending=pending)

        record = self._commit_payment(
            order_id,
            amount=decision.amount,
            amount_input=claimed if claimed is not None else decision.amount,
            source=decision.provenance,
            actor_id=actor_id,
            method=method,
            proof_reference=proof_reference,
        )
        return PaymentOutcome(status=ACCEPTED, order=self._get_order(order_id), payment=record)

    def _find_pending(self, actor_id: str, order_id: str) -> PendingPaymentConfirmation | None:
        return self.db.scalar(
            select(PendingPaymentConfirmation).where(
                PendingPaymentConfirmation.actor_id == actor_id,
                PendingPaymentConfirmation.order_id == order_id,
            )
        )

    def _discard_pending(self, order_id: str) -> None:
        self.db.execute(
            delete(PendingPaymentConfirmation)
            .where(PendingPaymentConfirmation.order_id == order_id)
            .execution_options(synchronize_session="fetch")
        )

    def _store_pending(
        self,
        *,
        actor_id: str,
        order_id: str,
        ambiguous: ReconciliationAmbiguous,
        method: PaymentMethod,
        proof_reference: str | None,
        now: datetime,
    ) -> PendingPaymentConfirmation:
        fields = {
            "expected_amount": ambiguous.expected_amount,
            "candidate_amount": ambiguous.candidate_amount,
            "provenance": ambiguous.provenance,
            "reason": ambiguous.reason,
            "method": method.value,
            "proof_reference": proof_reference,
            "created_at": now,
            "expires_at": now + timedelta(seconds=settings.pending_confirmation_ttl_s),
        }

        pending = self._find_pending(actor_id, order_id)
        if pending is None:
            pending = PendingPaymentConfirmation(actor_id=actor_id, order_id=order_id, **fields)
            self.db.add(pending)
        else:
            for name, value in fields.items():
                setattr(pending, name, value)

        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent submission from the same actor created the row first
            self.db.rollback()
            pending = self._find_pending(actor_id, order_id)
            if pending is None:
                raise
            for name, value in fields.items():
                setattr(pending, name, value)
            self.db.commit()
        return pending

    def resolve_pending_confirmation(
        self, actor_id: str, order_id: str, accept: bool
    ) -> PaymentOutcome:
        now = utc_now_from(self.clock)
        pending = self._find_pending(actor_id, order_id)
        if pending is None or ensure_aware(pending.expires_at) <= now:
            if pending is not None:
                self.db.delete(pending)
                self.db.commit()
            raise PendingConfirmationNotFound(
                f"No pending payment confirmation for {order_id} (expired or never created)"
            )

        amount = pending.candidate_amount if accept else pending.expected_amount
        try:
            record = self._commit_payment(
                order_id,
                amount=amount,
                amount_input=pending.candidate_amount,
                source="confirmation_yes" if accept else "confirmation_no",
                actor_id=actor_id,
                method=PaymentMethod(pending.method),
                proof_reference=pending.proof_reference,
                note=pending.reason,
            )
        except StateError:
            self._discard_pending(order_id)
            self.db.commit()
            raise
        log_event(
            "payment_confirmation_resolved",
            order_id=order_id,
            actor_id=actor_id,
            accepted=accept,
            amount=amount,
        )
        return PaymentOutcome(status=ACCEPTED, order=self._get_order(order_id), payment=record)

    def _commit_payment(
        self,
        order_id: str,
        *,
        amount: int,
        amount_input: int,
        source: str,
        actor_id: str,
        method: PaymentMethod,
        proof_reference: str | None,
        note: str | None = None,
    ) -> PaymentRecord:
        with self.guard.hold(order_lock_key(order_id)):
            order = self._get_order(order_id)
            self._ensure_payable(order)
            # Re-read under the guard: another commit may have settled the order
            if order.payment_status == PaymentStatus.FULL_PAID:
                raise StateError(
                    f"Order {order_id} is already fully paid", current=order.status.value
                )

            now = utc_now_from(self.clock)
            record = PaymentRecord(
                payment_id=self._next_payment_id(),
                order_id=order_id,
                amount_input=amount_input,
                amount_confirmed=amount,
                method=method,
                status=PaymentRecordStatus.CONFIRMED,
                source=source,
                proof_reference=proof_reference,
                note=note,
                created_by=actor_id,
                created_at=now,
                updated_at=now,
            )
            self.payments.append(record)

            paid = paid_from_records(self.payments.list_by_order(order_id))
            summary = apply_ledger(order, paid)
            self.orders.upsert(order)
            append_order_event(
                self.db,
                order_id,
                OrderEventType.PAYMENT_RECORDED,
                f"Payment {record.payment_id} recorded",
                {
                    "payment_id": record.payment_id,
                    "amount": amount,
                    "source": source,
                    "paid_amount": summary.paid_amount,
                    "remaining_balance": summary.remaining_balance,
                    "payment_status": summary.payment_status.value,
                },
            )
            # Any open confirmation was computed against the old balance
            self._discard_pending(order_id)
            self.db.commit()

        metrics_store.increment("payments_committed_total")
        log_event(
            "payment_committed",
            order_id=order_id,
            actor_id=actor_id,
            payment_id=record.payment_id,
            amount=amount,
            payment_status=summary.payment_status.value,
        )
        return record

    def reject_payment(
        self,
        order_id: str,
        *,
        amount: int | str,
        reason: str,
        actor_id: str,
        proof_reference: str | None = None,
    ) -> PaymentRecord:
        amount_input = parse_amount(amount)
        with self.guard.hold(order_lock_key(order_id)):
            self._get_order(order_id)
            now = utc_now_from(self.clock)
            record = PaymentRecord(
                payment_id=self._next_payment_id(),
                order_id=order_id,
                amount_input=amount_input,
                amount_confirmed=0,
                method=PaymentMethod.MANUAL,
                status=PaymentRecordStatus.REJECTED,
                source="claimed",
                proof_reference=proof_reference,
                note=reason,
                created_by=actor_id,
                created_at=now,
                updated_at=now,
            )
            self.payments.append(record)
            self.db.commit()

        metrics_store.increment("payments_rejected_total")
        log_event("payment_rejected", order_id=order_id, actor_id=actor_id, reason=reason)
        return record

    def list_payments(self, order_id: str) -> list[PaymentRecord]:
        self._get_order(order_id)
        return self.payments.list_by_order(order_id)
