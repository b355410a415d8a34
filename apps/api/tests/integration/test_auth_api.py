import pytest

from orderdesk.auth.jwt import issue_actor_token
from orderdesk.config import settings

ORDERS_URL = "/api/v1/orders"


def _headers(role: str, actor_id: str = "actor-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_actor_token(actor_id, role, settings.jwt_secret)}"}


@pytest.fixture
def strict_auth(monkeypatch):
    monkeypatch.setattr(settings, "enable_test_auth_bypass", False)


def test_missing_token_is_401_without_bypass(client, strict_auth):
    response = client.get(ORDERS_URL)

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_tampered_token_is_401(client, strict_auth):
    token = issue_actor_token("actor-1", "ADMIN", "some-other-secret")

    response = client.get(ORDERS_URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_bot_can_run_reminders_but_staff_cannot(client, strict_auth):
    assert client.post("/api/v1/reminders/run", headers=_headers("STAFF")).status_code == 403
    assert client.post("/api/v1/reminders/run", headers=_headers("BOT")).status_code == 200


def test_bot_cannot_read_metrics_or_complete_orders(client, strict_auth):
    created = client.post(
        ORDERS_URL,
        json={
            "event_date": "2026-10-24",
            "items": [{"name": "Risoles", "quantity": 30}],
            "product_total": 90_000,
        },
        headers=_headers("BOT"),
    )
    order_id = created.json()["id"]

    assert created.status_code == 201
    assert client.get("/metrics", headers=_headers("BOT")).status_code == 403
    assert (
        client.post(f"{ORDERS_URL}/{order_id}/complete", headers=_headers("BOT")).status_code
        == 403
    )
    assert (
        client.post(f"{ORDERS_URL}/{order_id}/complete", headers=_headers("STAFF")).status_code
        == 200
    )


def test_payment_is_attributed_to_token_subject(client, strict_auth):
    created = client.post(
        ORDERS_URL,
        json={
            "event_date": "2026-10-24",
            "items": [{"name": "Risoles", "quantity": 30}],
            "product_total": 90_000,
        },
        headers=_headers("STAFF", "staff-7"),
    )

    response = client.post(
        f"{ORDERS_URL}/{created.json()['id']}/payments",
        json={"claimed_amount": 90_000},
        headers=_headers("STAFF", "staff-7"),
    )

    assert response.json()["payment"]["created_by"] == "staff-7"
