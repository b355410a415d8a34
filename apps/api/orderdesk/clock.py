"""Business-day arithmetic.

Every "today" in the service is the calendar date in one fixed business
timezone (Asia/Jakarta by default). The clock is injected so tests can pin it.
"""

import re
from datetime import date, datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

from orderdesk.errors import ValidationError

_MONTHS = {
    "januari": 1,
    "january": 1,
    "februari": 2,
    "february": 2,
    "maret": 3,
    "march": 3,
    "april": 4,
    "mei": 5,
    "may": 5,
    "juni": 6,
    "june": 6,
    "juli": 7,
    "july": 7,
    "agustus": 8,
    "august": 8,
    "september": 9,
    "oktober": 10,
    "october": 10,
    "november": 11,
    "desember": 12,
    "december": 12,
}

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2}|\d{4})$")
_MONTH_NAME = re.compile(r"^(\d{1,2})\s+([A-Za-z]+)\s+(\d{4})$")


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def __init__(self, tz_name: str) -> None:
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_from(clock: Clock) -> datetime:
    return clock.now().astimezone(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def business_today(clock: Clock, tz_name: str) -> date:
    return clock.now().astimezone(ZoneInfo(tz_name)).date()


def days_between(today: date, event_date: date) -> int:
    return (event_date - today).days


def normalize_event_date(value: date | datetime | str) -> date:
    """Coerce the date shapes seen in order forms to a ``date``.

    Accepts ISO ``YYYY-MM-DD`` (optionally with a time part), ``DD/MM/YYYY``,
    ``DD-MM-YYYY``, two-digit years (20xx) and ``18 Januari 2026`` style
    month names in Indonesian or English.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid event_date input: {value!r}")

    text = value.strip()
    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
    elif match := _DAY_FIRST.match(text):
        day, month, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000
    elif match := _MONTH_NAME.match(text):
        day = int(match.group(1))
        month = _MONTHS.get(match.group(2).lower(), 0)
        year = int(match.group(3))
        if not month:
            raise ValidationError(f"Unknown month name in event_date: {text}")
    else:
        raise ValidationError(f"Cannot parse event_date: {text}")

    if not 2000 <= year <= 2100:
        raise ValidationError(f"Invalid year {year} in event_date: {text}")
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise ValidationError(f"Invalid event_date {text}: {exc}") from exc
