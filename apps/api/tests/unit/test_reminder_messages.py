from datetime import date

from orderdesk.config import settings
from orderdesk.models.order import Order, PaymentStatus
from orderdesk.models.reminder_log import ReminderType
from orderdesk.services.reminder_messages import (
    format_rupiah,
    render_auto_cancel_notice,
    render_reminder,
    total_cups,
)


def _order(**overrides) -> Order:
    fields = {
        "id": "ORD/20261018/000001",
        "customer_name": "Rina",
        "event_date": date(2026, 10, 22),
        "delivery_time": "10:00",
        "delivery_method": "Pickup",
        "items": [{"name": "Es Kopi Susu", "quantity": 30}, {"name": "Matcha", "quantity": 10}],
        "packaging_fee": 0,
        "total_amount": 240_000,
        "remaining_balance": 120_000,
        "payment_status": PaymentStatus.DP_PAID,
    }
    fields.update(overrides)
    return Order(**fields)


def test_format_rupiah_uses_dot_thousands():
    assert format_rupiah(1_250_000) == "Rp1.250.000"
    assert format_rupiah(0) == "Rp0"


def test_total_cups_sums_quantities():
    assert total_cups(_order()) == 40
    assert total_cups(_order(items=[])) == 0


def test_payment_reminder_shows_bank_details_when_configured(monkeypatch):
    monkeypatch.setattr(settings, "bank_name", "BCA")
    monkeypatch.setattr(settings, "bank_account_number", "1234567890")
    monkeypatch.setattr(settings, "bank_account_holder", "Orderdesk Kitchen")

    text = render_reminder(ReminderType.H4_PAYMENT, _order())

    assert "Invoice: ORD/20261018/000001" in text
    assert "Order total: Rp240.000" in text
    assert "Remaining balance: Rp120.000" in text
    assert "Account no.: 1234567890" in text


def test_payment_reminder_omits_bank_block_without_account(monkeypatch):
    monkeypatch.setattr(settings, "bank_account_number", "")

    assert "BANK TRANSFER" not in render_reminder(ReminderType.H4_PAYMENT, _order())


def test_procurement_reminder_lists_items():
    text = render_reminder(ReminderType.H3_PROCUREMENT, _order())

    assert "30x Es Kopi Susu" in text
    assert "10x Matcha" in text
    assert "Payment status: DP_PAID" in text


def test_preparation_reminder_reports_packaging():
    assert "Packaging: NO" in render_reminder(ReminderType.H1_PREPARATION, _order())
    assert "Packaging: YES" in render_reminder(
        ReminderType.H1_PREPARATION, _order(packaging_fee=5_000)
    )


def test_auto_cancel_notice_names_order():
    assert "Order ID: ORD/20261018/000001" in render_auto_cancel_notice(_order())
