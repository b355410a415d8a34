"""Reminder worker tasks."""

from __future__ import annotations

from datetime import date

from workers.reminder_worker.worker import (
    ReminderRunResult,
    ReminderWorkerSettings,
    load_settings,
    run_reminders_with_retries,
)


def reminder_tick(
    settings: ReminderWorkerSettings | None = None,
    as_of: date | None = None,
) -> ReminderRunResult:
    """Run the daily reminders once.

    Meant for cron-style scheduling; ``as_of`` replays a missed day.
    """
    return run_reminders_with_retries(settings or load_settings(), as_of=as_of)
