from orderdesk.config import settings
from orderdesk.models.order import Order
from orderdesk.models.reminder_log import ReminderType

_RULE = "--------------------------------"


def format_rupiah(amount: int) -> str:
    return f"Rp{amount:,}".replace(",", ".")


def _items_block(order: Order) -> str:
    items = order.items or []
    if not items:
        return "-"
    return "\n".join(f"{item['quantity']}x {item['name']}" for item in items)


def total_cups(order: Order) -> int:
    return sum(int(item.get("quantity") or 0) for item in order.items or [])


def _order_header(order: Order) -> list[str]:
    return [
        f"Invoice: {order.id}",
        f"Customer: {order.customer_name or '-'}",
        f"Event date: {order.event_date.isoformat()}",
        f"Delivery time: {order.delivery_time or '-'}",
    ]


def render_payment_reminder(order: Order) -> str:
    lines = [
        f"Hello {order.customer_name or 'there'},",
        "",
        f"This is {settings.vendor_name}. Your order is scheduled for delivery in 4 days.",
        "",
        f"Invoice: {order.id}",
        f"Order total: {format_rupiah(order.total_amount)}",
        f"Remaining balance: {format_rupiah(order.remaining_balance)}",
        "",
        "IMPORTANT: full payment is required no later than 3 days before delivery.",
        "Orders not fully paid by then are cancelled automatically.",
    ]
    if settings.bank_account_number:
        lines += [
            "",
            _RULE,
            "BANK TRANSFER",
            settings.bank_name,
            f"Account no.: {settings.bank_account_number}",
            f"Account holder: {settings.bank_account_holder}",
            _RULE,
        ]
    lines += ["", "Thank you for your attention."]
    return "\n".join(lines)


def render_procurement_reminder(order: Order) -> str:
    lines = [
        "REMINDER H-3 - INGREDIENT ORDER",
        "",
        *_order_header(order),
        "",
        "Items:",
        _items_block(order),
        "",
        "Checklist:",
        "- Place all ingredient orders today",
        "- Check stock of base ingredients and toppings",
        "- Reconfirm cup count and packaging",
        "",
        f"Payment status: {order.payment_status.value}",
    ]
    return "\n".join(lines)


def render_preparation_reminder(order: Order) -> str:
    lines = [
        "REMINDER H-1 - PREPARATION",
        settings.vendor_name,
        "",
        *_order_header(order),
        _RULE,
        "Items:",
        _items_block(order),
        f"Total cups: {total_cups(order)}",
        f"Packaging: {'YES' if order.packaging_fee > 0 else 'NO'}",
        f"Delivery method: {order.delivery_method or '-'}",
        _RULE,
        "Checklist:",
        "- Base ingredients ready in the right quantity",
        "- Toppings complete",
        "- Cups, straws and lids available",
        "- Packaging ready (if ordered)",
        "- Order labels clear",
        "- Delivery address and contact checked",
        _RULE,
        f"Payment status: {order.payment_status.value}",
    ]
    return "\n".join(lines)


_RENDERERS = {
    ReminderType.H4_PAYMENT: render_payment_reminder,
    ReminderType.H3_PROCUREMENT: render_procurement_reminder,
    ReminderType.H1_PREPARATION: render_preparation_reminder,
}


def render_reminder(reminder_type: ReminderType, order: Order) -> str:
    return _RENDERERS[reminder_type](order)


def render_auto_cancel_notice(order: Order) -> str:
    return "\n".join(
        [
            "Order cancelled",
            "",
            f"Order ID: {order.id}",
            "Reason: payment was not received 3 days before the event.",
            "",
            "You are welcome to place a new order at any time.",
        ]
    )
