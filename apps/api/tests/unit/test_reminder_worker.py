import json
import urllib.error
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from workers.reminder_worker import tasks
from workers.reminder_worker import worker as worker_module


class _FakeResponse:
    def __init__(self, body: dict, status: int = 200) -> None:
        self._body = json.dumps(body).encode("utf-8")
        self.status = status

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _settings(**overrides) -> worker_module.ReminderWorkerSettings:
    values = {
        "api_base_url": "http://api",
        "run_hour": 7,
        "timezone": "Asia/Jakarta",
        "timeout_s": 2.0,
        "auth_token": None,
        "max_retries": 2,
        "retry_backoff_s": 0.25,
    }
    values.update(overrides)
    return worker_module.ReminderWorkerSettings(**values)


def _http_error(request, code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(url=request.full_url, code=code, msg="error", hdrs=None, fp=None)


SUMMARY = {
    "run_date": "2026-10-18",
    "eligible": 3,
    "sent": 1,
    "skipped": 1,
    "failed": 0,
    "auto_cancelled": 1,
    "already_processed": 0,
}


def test_load_settings_defaults():
    settings = worker_module.load_settings({})

    assert settings.api_base_url == "http://localhost:8000"
    assert settings.run_hour == 7
    assert settings.timezone == "Asia/Jakarta"
    assert settings.auth_token is None
    assert settings.max_retries == 3


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RUN_HOUR", "24"),
        ("TIMEZONE", "Mars/Olympus"),
        ("TIMEOUT_S", "0"),
        ("MAX_RETRIES", "-1"),
        ("RETRY_BACKOFF_S", "-1"),
        ("API_BASE_URL", "  "),
    ],
)
def test_load_settings_rejects_invalid_values(name, value):
    with pytest.raises(ValueError, match=name):
        worker_module.load_settings({f"ORDERDESK_REMINDER_WORKER_{name}": value})


def test_run_once_posts_with_token_and_date():
    def opener(request, timeout):
        assert timeout == 2.0
        assert request.full_url == "http://api/api/v1/reminders/run"
        assert request.headers["Authorization"] == "Bearer abc"
        assert json.loads(request.data.decode("utf-8")) == {"as_of": "2026-10-18"}
        return _FakeResponse(SUMMARY)

    result = worker_module.run_reminders_once(
        _settings(auth_token="abc"), opener=opener, as_of=date(2026, 10, 18)
    )

    assert result.ok is True
    assert result.summary["auto_cancelled"] == 1
    assert result.status_code == 200


def test_run_once_flags_malformed_body():
    result = worker_module.run_reminders_once(
        _settings(), opener=lambda request, timeout: _FakeResponse({"sent": "many"})
    )

    assert result.ok is False
    assert "sent" in result.error


def test_retries_network_errors_then_succeeds():
    sleeps: list[float] = []
    calls = {"count": 0}

    def opener(request, timeout):
        calls["count"] += 1
        if calls["count"] < 3:
            raise urllib.error.URLError("temporary network")
        return _FakeResponse(SUMMARY)

    result = worker_module.run_reminders_with_retries(
        _settings(), opener=opener, sleep=sleeps.append
    )

    assert result.ok is True
    assert result.attempts == 3
    assert sleeps == [0.25, 0.5]


@pytest.mark.parametrize("code", [401, 423])
def test_client_errors_and_lock_contention_are_not_retried(code):
    def opener(request, timeout):
        raise _http_error(request, code)

    result = worker_module.run_reminders_with_retries(
        _settings(max_retries=5), opener=opener, sleep=lambda _s: None
    )

    assert result.ok is False
    assert result.status_code == code
    assert result.attempts == 1


def test_server_errors_stop_after_max_retries():
    def opener(request, timeout):
        raise _http_error(request, 503)

    result = worker_module.run_reminders_with_retries(
        _settings(max_retries=1), opener=opener, sleep=lambda _s: None
    )

    assert result.ok is False
    assert result.error == "HTTPError: 503"
    assert result.attempts == 2


def test_next_run_at_is_today_before_run_hour_and_tomorrow_after():
    tz = ZoneInfo("Asia/Jakarta")
    settings = _settings(run_hour=7)

    early = worker_module.next_run_at(settings, datetime(2026, 10, 18, 6, 0, tzinfo=tz))
    late = worker_module.next_run_at(settings, datetime(2026, 10, 18, 7, 0, tzinfo=tz))

    assert early == datetime(2026, 10, 18, 7, 0, tzinfo=tz)
    assert late == datetime(2026, 10, 19, 7, 0, tzinfo=tz)


def test_reminder_tick_uses_given_settings(monkeypatch):
    seen = {}

    def fake_run(settings, as_of=None):
        seen["settings"] = settings
        seen["as_of"] = as_of
        return worker_module.ReminderRunResult(ok=True)

    monkeypatch.setattr(tasks, "run_reminders_with_retries", fake_run)
    settings = _settings()

    result = tasks.reminder_tick(settings, as_of=date(2026, 10, 17))

    assert result.ok is True
    assert seen == {"settings": settings, "as_of": date(2026, 10, 17)}
