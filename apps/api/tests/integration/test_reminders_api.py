ORDERS_URL = "/api/v1/orders"
RUN_URL = "/api/v1/reminders/run"
LOG_URL = "/api/v1/reminders/log"


def _create_order(client, event_date: str, **overrides) -> str:
    body = {
        "customer_name": "Sari",
        "event_date": event_date,
        "items": [{"name": "Kue Lapis", "quantity": 50}],
        "product_total": 240_000,
    }
    body.update(overrides)
    response = client.post(ORDERS_URL, json=body)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_run_sends_h4_reminder_and_logs_it(client, sender):
    order_id = _create_order(client, "2026-10-22")

    response = client.post(RUN_URL, json={"as_of": "2026-10-18"})

    assert response.status_code == 200
    assert response.json() == {
        "run_date": "2026-10-18",
        "eligible": 1,
        "sent": 1,
        "skipped": 0,
        "failed": 0,
        "auto_cancelled": 0,
        "already_processed": 0,
    }
    assert [recipient for recipient, _ in sender.sent] == ["admin-1", "admin-2"]

    log = client.get(LOG_URL, params={"date": "2026-10-18"}).json()["items"]
    assert len(log) == 1
    assert log[0]["order_id"] == order_id
    assert log[0]["reminder_type"] == "H-4"
    assert log[0]["status"] == "SENT"
    assert log[0]["notes"] == "Sent to 2 admin(s)"


def test_run_without_body_uses_business_today(client):
    _create_order(client, "2026-10-19")

    response = client.post(RUN_URL)

    assert response.json()["run_date"] == "2026-10-18"
    assert response.json()["sent"] == 1


def test_second_run_on_same_day_sends_nothing(client, sender):
    _create_order(client, "2026-10-22")
    client.post(RUN_URL)

    second = client.post(RUN_URL).json()

    assert second["sent"] == 0
    assert len(sender.sent) == 2
    assert len(client.get(LOG_URL).json()["items"]) == 1


def test_unpaid_order_is_auto_cancelled_at_h3(client, sender):
    order_id = _create_order(client, "2026-10-21", customer_chat_id="cust-9")

    summary = client.post(RUN_URL).json()
    order = client.get(f"{ORDERS_URL}/{order_id}").json()

    assert summary["auto_cancelled"] == 1
    assert order["status"] == "cancelled"
    assert order["cancel_reason"]
    assert sender.texts_for("cust-9")[0].startswith("Order cancelled")
    assert sender.texts_for("admin-1") == []
    assert client.get(LOG_URL).json()["items"] == []


def test_paid_order_skips_h4_with_log_row(client, sender):
    order_id = _create_order(client, "2026-10-22")
    client.post(f"{ORDERS_URL}/{order_id}/payments", json={"claimed_amount": 240_000})

    summary = client.post(RUN_URL).json()

    assert summary["skipped"] == 1
    assert sender.sent == []
    [entry] = client.get(LOG_URL).json()["items"]
    assert entry["status"] == "SKIPPED"
    assert entry["notes"] == "Skipped because fully paid"


def test_log_for_other_date_is_empty(client):
    _create_order(client, "2026-10-22")
    client.post(RUN_URL)

    response = client.get(LOG_URL, params={"date": "2026-10-17"})

    assert response.json()["items"] == []


def test_run_metrics_are_exposed(client):
    _create_order(client, "2026-10-22")
    client.post(RUN_URL)

    counters = client.get("/metrics").json()["counters"]

    assert counters["reminder_runs_total"] == 1
    assert counters["reminders_sent_total"] == 1
