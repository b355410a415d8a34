from fastapi import Depends, Request
from sqlalchemy.orm import Session

from orderdesk.clock import Clock, SystemClock
from orderdesk.config import settings, static_admin_chat_ids
from orderdesk.db.session import get_db, session_scope
from orderdesk.integrations.amount_extractor import AmountExtractor, build_amount_extractor
from orderdesk.integrations.telegram_client import MessageSender, build_message_sender
from orderdesk.repositories import SqlAdminRoster
from orderdesk.services.orders_service import OrderService
from orderdesk.services.payment_service import PaymentService
from orderdesk.services.recipients import (
    CachedRecipientDirectory,
    RecipientDirectory,
    StaticRecipientDirectory,
)
from orderdesk.services.reminder_scheduler import ReminderScheduler


def get_clock() -> Clock:
    return SystemClock(settings.business_timezone)


def get_message_sender() -> MessageSender:
    return build_message_sender()


def get_amount_extractor() -> AmountExtractor:
    return build_amount_extractor()


def _load_admin_chat_ids() -> list[str]:
    with session_scope() as db:
        return SqlAdminRoster(db).list_active_admins()


def build_recipient_directory() -> RecipientDirectory:
    static_ids = static_admin_chat_ids()
    if static_ids:
        return StaticRecipientDirectory(static_ids)
    return CachedRecipientDirectory(_load_admin_chat_ids, ttl_s=settings.recipient_cache_ttl_s)


def get_recipient_directory(request: Request) -> RecipientDirectory:
    directory = getattr(request.app.state, "recipient_directory", None)
    if directory is None:
        directory = build_recipient_directory()
        request.app.state.recipient_directory = directory
    return directory


def get_order_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> OrderService:
    return OrderService(db, clock)


def get_payment_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    extractor: AmountExtractor = Depends(get_amount_extractor),
) -> PaymentService:
    return PaymentService(db, clock, extractor=extractor)


def get_reminder_scheduler(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sender: MessageSender = Depends(get_message_sender),
    recipients: RecipientDirectory = Depends(get_recipient_directory),
) -> ReminderScheduler:
    return ReminderScheduler(db, clock, sender=sender, recipients=recipients)
