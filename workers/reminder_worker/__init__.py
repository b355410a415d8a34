"""Reminder worker module exports."""

from .worker import (
    ReminderRunResult,
    ReminderWorkerSettings,
    load_settings,
    next_run_at,
    run_forever,
    run_reminders_once,
    run_reminders_with_retries,
)

__all__ = [
    "ReminderRunResult",
    "ReminderWorkerSettings",
    "load_settings",
    "next_run_at",
    "run_forever",
    "run_reminders_once",
    "run_reminders_with_retries",
]
