"""Order money math.

Amounts are whole rupiah held as ``int``. Everything here is pure: callers
pass in what they know and get derived values back, and any malformed input
raises ``ValidationError`` before anything is written.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from orderdesk.errors import ValidationError
from orderdesk.models.order import Order, PaymentStatus
from orderdesk.models.payment_record import PaymentRecordStatus

MIN_DEPOSIT_NUMERATOR = 1
MIN_DEPOSIT_DENOMINATOR = 2
# Orders confirmed this close to the event must be paid in full straight away
FULL_PAYMENT_WINDOW_DAYS = 4
FULL_PAYMENT_DUE_DAYS_BEFORE_EVENT = 3

_CURRENCY_PREFIX = re.compile(r"^\s*(rp|idr)\.?", re.IGNORECASE)
_GROUPED_DIGITS = re.compile(r"^\d{1,3}([.,]\d{3})*$|^\d+$")


@dataclass(frozen=True)
class LedgerSummary:
    total_amount: int
    paid_amount: int
    remaining_balance: int
    payment_status: PaymentStatus
    minimum_deposit: int


@dataclass(frozen=True)
class PaymentWindow:
    deposit_allowed: bool
    full_payment_due: date


def validate_amount(value: Any, field: str = "amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"{field} must be >= 0, got {value}")
    return value


def compute_total(product_total: int, packaging_fee: int = 0, delivery_fee: int = 0) -> int:
    return (
        validate_amount(product_total, "product_total")
        + validate_amount(packaging_fee, "packaging_fee")
        + validate_amount(delivery_fee, "delivery_fee")
    )


def remaining_balance(total: int, paid: int) -> int:
    validate_amount(total, "total_amount")
    validate_amount(paid, "paid_amount")
    return max(0, total - paid)


def payment_status(total: int, paid: int) -> PaymentStatus:
    validate_amount(total, "total_amount")
    validate_amount(paid, "paid_amount")
    if paid == 0:
        return PaymentStatus.UNPAID
    if paid >= total:
        return PaymentStatus.FULL_PAID
    return PaymentStatus.DP_PAID


def minimum_deposit(total: int) -> int:
    validate_amount(total, "total_amount")
    # ceil(total / 2) without floats
    return -(-total * MIN_DEPOSIT_NUMERATOR // MIN_DEPOSIT_DENOMINATOR)


def summarize(total: int, paid: int) -> LedgerSummary:
    return LedgerSummary(
        total_amount=total,
        paid_amount=paid,
        remaining_balance=remaining_balance(total, paid),
        payment_status=payment_status(total, paid),
        minimum_deposit=minimum_deposit(total),
    )


def paid_from_records(records: Iterable[Any]) -> int:
    return sum(
        record.amount_confirmed
        for record in records
        if record.status == PaymentRecordStatus.CONFIRMED
    )


def payment_window(event_date: date, confirmed_on: date) -> PaymentWindow:
    days_until_event = (event_date - confirmed_on).days
    if days_until_event <= FULL_PAYMENT_WINDOW_DAYS:
        return PaymentWindow(deposit_allowed=False, full_payment_due=confirmed_on)
    return PaymentWindow(
        deposit_allowed=True,
        full_payment_due=event_date - timedelta(days=FULL_PAYMENT_DUE_DAYS_BEFORE_EVENT),
    )


def parse_amount(value: Any) -> int:
    """Parse an operator-entered rupiah amount.

    ``235000``, ``"235.000"``, ``"235,000"`` and ``"Rp 235.000"`` all yield
    235000. Zero, negatives and anything non-numeric are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = _CURRENCY_PREFIX.sub("", value).strip().replace(" ", "")
        if not text or not _GROUPED_DIGITS.match(text):
            raise ValidationError(f"Invalid amount: {value!r}")
        amount = int(text.replace(".", "").replace(",", ""))
    else:
        raise ValidationError(f"Invalid amount: {value!r}")

    if amount <= 0:
        raise ValidationError(f"Amount must be positive, got {amount}")
    return amount


def apply_ledger(order: Order, paid: int) -> LedgerSummary:
    summary = summarize(order.total_amount, paid)
    order.paid_amount = summary.paid_amount
    order.remaining_balance = summary.remaining_balance
    order.payment_status = summary.payment_status
    return summary
