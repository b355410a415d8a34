from datetime import date, datetime, timezone

import pytest

from orderdesk.clock import (
    SystemClock,
    business_today,
    days_between,
    ensure_aware,
    normalize_event_date,
    utc_now_from,
)
from orderdesk.errors import ValidationError


class _Clock:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def now(self) -> datetime:
        return self.value


def test_business_today_uses_business_timezone_not_utc():
    clock = _Clock(datetime(2026, 10, 18, 18, 30, tzinfo=timezone.utc))

    assert business_today(clock, "Asia/Jakarta") == date(2026, 10, 19)
    assert business_today(clock, "UTC") == date(2026, 10, 18)


def test_days_between_is_signed():
    assert days_between(date(2026, 10, 18), date(2026, 10, 22)) == 4
    assert days_between(date(2026, 10, 18), date(2026, 10, 17)) == -1


def test_utc_now_from_converts_clock_time():
    clock = SystemClock("Asia/Jakarta")

    assert utc_now_from(clock).tzinfo == timezone.utc


def test_ensure_aware_treats_naive_as_utc():
    naive = datetime(2026, 10, 18, 2, 0)

    assert ensure_aware(naive) == datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2026-10-24", date(2026, 10, 24)),
        ("2026-10-24T10:00:00", date(2026, 10, 24)),
        ("24/10/2026", date(2026, 10, 24)),
        ("24-10-2026", date(2026, 10, 24)),
        ("24/10/26", date(2026, 10, 24)),
        ("24 Oktober 2026", date(2026, 10, 24)),
        ("24 October 2026", date(2026, 10, 24)),
        (date(2026, 10, 24), date(2026, 10, 24)),
        (datetime(2026, 10, 24, 8, 0), date(2026, 10, 24)),
    ],
)
def test_normalize_event_date_accepts_form_formats(raw, expected):
    assert normalize_event_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "tomorrow", "31/02/2026", "24 Brumaire 2026", "24/10/1850"])
def test_normalize_event_date_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        normalize_event_date(raw)
