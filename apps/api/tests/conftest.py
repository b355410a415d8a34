from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

import orderdesk.models  # noqa: F401
from orderdesk.config import settings
from orderdesk.db.base import Base
from orderdesk.db.session import SessionLocal, engine, get_db
from orderdesk.dependencies import (
    get_amount_extractor,
    get_clock,
    get_message_sender,
    get_recipient_directory,
)
from orderdesk.errors import DeliveryFailure
from orderdesk.integrations.errors import IntegrationError
from orderdesk.main import app
from orderdesk.observability import metrics_store
from orderdesk.schemas.order import OrderCreate
from orderdesk.services.orders_service import OrderService
from orderdesk.services.payment_service import PaymentService
from orderdesk.services.recipients import StaticRecipientDirectory
from orderdesk.services.reminder_scheduler import ReminderScheduler

JAKARTA = ZoneInfo("Asia/Jakarta")


class FixedClock:
    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.astimezone(JAKARTA).date()

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


class FakeSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_for: dict[str, str] = {}
        self.explode = False

    def send(self, recipient_id: str, text: str) -> None:
        if self.explode:
            raise RuntimeError("sender crashed")
        if recipient_id in self.fail_for:
            raise DeliveryFailure(recipient_id, self.fail_for[recipient_id])
        self.sent.append((recipient_id, text))

    def texts_for(self, recipient_id: str) -> list[str]:
        return [text for rid, text in self.sent if rid == recipient_id]


class FakeExtractor:
    def __init__(self) -> None:
        self.candidates = []
        self.error: IntegrationError | None = None
        self.calls: list[str] = []

    def extract(self, proof_reference: str):
        self.calls.append(proof_reference)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def reset_metrics_store():
    metrics_store.reset()
    yield


@pytest.fixture(scope="session", autouse=True)
def enable_test_auth_bypass():
    original = settings.enable_test_auth_bypass
    settings.enable_test_auth_bypass = True
    yield
    settings.enable_test_auth_bypass = original


@pytest.fixture(scope="session", autouse=True)
def enable_testing_mode():
    original = settings.testing
    settings.testing = True
    yield
    settings.testing = original


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 18, 9, 0, tzinfo=JAKARTA))


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def recipients() -> StaticRecipientDirectory:
    return StaticRecipientDirectory(["admin-1", "admin-2"])


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def order_service(db_session, clock) -> OrderService:
    return OrderService(db_session, clock)


@pytest.fixture
def payment_service(db_session, clock, extractor) -> PaymentService:
    return PaymentService(db_session, clock, extractor=extractor)


@pytest.fixture
def scheduler(db_session, clock, sender, recipients) -> ReminderScheduler:
    return ReminderScheduler(db_session, clock, sender=sender, recipients=recipients)


def order_payload(event_date: date, **overrides) -> OrderCreate:
    data = {
        "customer_name": "Rina",
        "customer_phone": "+6281200000001",
        "event_date": event_date,
        "delivery_time": "10:00",
        "delivery_method": "Pickup",
        "items": [{"name": "Es Kopi Susu", "quantity": 40}],
        "product_total": 240_000,
    }
    data.update(overrides)
    return OrderCreate(**data)


@pytest.fixture
def make_order(order_service, clock):
    def _make(days_until_event: int = 6, **overrides):
        payload = order_payload(clock.today() + timedelta(days=days_until_event), **overrides)
        return order_service.create_order(payload, actor_id="admin-1")

    return _make


@pytest.fixture
def client(clock, sender, extractor, recipients):
    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_message_sender] = lambda: sender
    app.dependency_overrides[get_amount_extractor] = lambda: extractor
    app.dependency_overrides[get_recipient_directory] = lambda: recipients
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
