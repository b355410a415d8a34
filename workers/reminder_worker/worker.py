"""Daily trigger for the reminder run endpoint."""

from __future__ import annotations

import json
import logging
import os
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("orderdesk.reminder_worker")

ENV_PREFIX = "ORDERDESK_REMINDER_WORKER_"
SUMMARY_FIELDS = ("eligible", "sent", "skipped", "failed", "auto_cancelled", "already_processed")


@dataclass(frozen=True)
class ReminderWorkerSettings:
    api_base_url: str
    run_hour: int
    timezone: str
    timeout_s: float
    auth_token: str | None
    max_retries: int
    retry_backoff_s: float


@dataclass(frozen=True)
class ReminderRunResult:
    ok: bool
    summary: dict[str, int] = field(default_factory=dict)
    status_code: int | None = None
    error: str | None = None
    attempts: int = 1


def load_settings(env: dict[str, str] | None = None) -> ReminderWorkerSettings:
    source = env if env is not None else os.environ

    def read(name: str, default: str) -> str:
        return source.get(f"{ENV_PREFIX}{name}", default).strip()

    api_base_url = read("API_BASE_URL", "http://localhost:8000")
    run_hour = int(read("RUN_HOUR", "7"))
    timezone = read("TIMEZONE", "Asia/Jakarta")
    timeout_s = float(read("TIMEOUT_S", "30"))
    auth_token = read("AUTH_TOKEN", "") or None
    max_retries = int(read("MAX_RETRIES", "3"))
    retry_backoff_s = float(read("RETRY_BACKOFF_S", "2"))

    if not api_base_url:
        raise ValueError(f"{ENV_PREFIX}API_BASE_URL must not be empty")
    if not 0 <= run_hour <= 23:
        raise ValueError(f"{ENV_PREFIX}RUN_HOUR must be between 0 and 23")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"{ENV_PREFIX}TIMEZONE is not a known timezone: {timezone}") from exc
    if timeout_s <= 0:
        raise ValueError(f"{ENV_PREFIX}TIMEOUT_S must be > 0")
    if max_retries < 0:
        raise ValueError(f"{ENV_PREFIX}MAX_RETRIES must be >= 0")
    if retry_backoff_s < 0:
        raise ValueError(f"{ENV_PREFIX}RETRY_BACKOFF_S must be >= 0")

    return ReminderWorkerSettings(
        api_base_url=api_base_url.rstrip("/"),
        run_hour=run_hour,
        timezone=timezone,
        timeout_s=timeout_s,
        auth_token=auth_token,
        max_retries=max_retries,
        retry_backoff_s=retry_backoff_s,
    )


def _decode_summary(raw: str) -> tuple[dict[str, int], str | None]:
    try:
        body = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {}, "Invalid JSON in reminder run response"
    if not isinstance(body, dict):
        return {}, "Reminder run response must be an object"

    summary: dict[str, int] = {}
    for name in SUMMARY_FIELDS:
        try:
            summary[name] = int(body.get(name, 0))
        except (TypeError, ValueError):
            return {}, f"Invalid {name} value in reminder run response"
    return summary, None


def run_reminders_once(
    settings: ReminderWorkerSettings,
    opener: Callable[..., object] = urllib.request.urlopen,
    as_of: date | None = None,
) -> ReminderRunResult:
    payload = {"as_of": as_of.isoformat()} if as_of else {}
    headers = {"Content-Type": "application/json"}
    if settings.auth_token:
        headers["Authorization"] = f"Bearer {settings.auth_token}"

    request = urllib.request.Request(
        url=f"{settings.api_base_url}/api/v1/reminders/run",
        data=json.dumps(payload).encode("utf-8"),
        method="POST",
        headers=headers,
    )

    try:
        with opener(request, timeout=settings.timeout_s) as response:
            summary, error = _decode_summary(response.read().decode("utf-8"))
            return ReminderRunResult(
                ok=error is None,
                summary=summary,
                status_code=getattr(response, "status", 200),
                error=error,
            )
    except urllib.error.HTTPError as exc:
        return ReminderRunResult(ok=False, status_code=exc.code, error=f"HTTPError: {exc.code}")
    except urllib.error.URLError as exc:
        return ReminderRunResult(ok=False, error=f"URLError: {exc.reason}")


def _is_retryable(result: ReminderRunResult) -> bool:
    if result.ok:
        return False
    if result.status_code is None:
        return True
    # 423 means another run holds the daily lock; not retried
    if result.status_code in {408, 429}:
        return True
    return result.status_code >= 500


def run_reminders_with_retries(
    settings: ReminderWorkerSettings,
    opener: Callable[..., object] = urllib.request.urlopen,
    sleep: Callable[[float], None] = time.sleep,
    as_of: date | None = None,
) -> ReminderRunResult:
    for attempts in range(1, settings.max_retries + 2):
        result = run_reminders_once(settings, opener=opener, as_of=as_of)
        if result.ok or not _is_retryable(result) or attempts > settings.max_retries:
            return ReminderRunResult(
                ok=result.ok,
                summary=result.summary,
                status_code=result.status_code,
                error=result.error,
                attempts=attempts,
            )

        delay = settings.retry_backoff_s * (2 ** (attempts - 1))
        logger.warning(
            "reminder run attempt %d failed (%s); retrying in %.1fs", attempts, result.error, delay
        )
        sleep(delay)

    raise RuntimeError("reminder retry loop exhausted unexpectedly")


def next_run_at(settings: ReminderWorkerSettings, now: datetime) -> datetime:
    """Next occurrence of ``run_hour`` in the worker timezone, strictly after ``now``."""
    local_now = now.astimezone(ZoneInfo(settings.timezone))
    candidate = local_now.replace(hour=settings.run_hour, minute=0, second=0, microsecond=0)
    if candidate <= local_now:
        candidate = candidate + timedelta(days=1)
    return candidate


def run_forever(
    settings: ReminderWorkerSettings,
    now: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    while True:
        current = now()
        target = next_run_at(settings, current)
        sleep(max((target - current).total_seconds(), 0.0))

        result = run_reminders_with_retries(settings, sleep=sleep)
        if result.ok:
            logger.info("reminder run finished: %s", result.summary)
        else:
            logger.error(
                "reminder run failed after %d attempt(s): %s", result.attempts, result.error
            )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_forever(load_settings())
