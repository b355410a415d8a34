from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderdesk.auth.dependencies import ADMIN, BOT, AuthContext, require_backoffice, require_roles
from orderdesk.db.session import get_db
from orderdesk.dependencies import get_reminder_scheduler
from orderdesk.repositories import SqlReminderLog
from orderdesk.schemas.reminders import (
    ReminderLogEntryResponse,
    ReminderLogListResponse,
    ReminderRunRequest,
    ReminderRunResponse,
)
from orderdesk.services.reminder_scheduler import ReminderScheduler

router = APIRouter(prefix="/api/v1/reminders", tags=["reminders"])


@router.post("/run", response_model=ReminderRunResponse, summary="Run daily reminders")
def run_reminders_endpoint(
    payload: ReminderRunRequest | None = None,
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
    _auth: AuthContext = Depends(require_roles(ADMIN, BOT)),
) -> ReminderRunResponse:
    """
    Safe to call repeatedly for the same day. ``as_of`` overrides "today"
    for operational recovery.
    """
    summary = scheduler.run(as_of=payload.as_of if payload else None)
    return ReminderRunResponse(**asdict(summary))


@router.get("/log", response_model=ReminderLogListResponse, summary="Reminder log")
def reminder_log_endpoint(
    reminder_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    _auth: AuthContext = Depends(require_backoffice),
) -> ReminderLogListResponse:
    log = SqlReminderLog(db)
    entries = log.list_for_date(reminder_date) if reminder_date else log.list_all()
    return ReminderLogListResponse(
        items=[ReminderLogEntryResponse.model_validate(entry) for entry in entries]
    )
