import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from orderdesk.models.reminder_log import ReminderLogStatus, ReminderType


class ReminderRunRequest(BaseModel):
    as_of: date | None = None


class ReminderRunResponse(BaseModel):
    run_date: date
    eligible: int
    sent: int
    skipped: int
    failed: int
    auto_cancelled: int
    already_processed: int


class ReminderLogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: str
    reminder_type: ReminderType
    reminder_date: date
    status: ReminderLogStatus
    attempts: int
    sent_at: datetime | None
    last_attempt_at: datetime | None
    notes: str
    created_at: datetime


class ReminderLogListResponse(BaseModel):
    items: list[ReminderLogEntryResponse]
