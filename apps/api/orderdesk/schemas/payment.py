from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orderdesk.errors import ValidationError
from orderdesk.models.order import PaymentStatus
from orderdesk.models.payment_record import PaymentMethod, PaymentRecordStatus
from orderdesk.services.payment_ledger import parse_amount


def _parse_optional_amount(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        return parse_amount(value)
    except ValidationError as exc:
        raise ValueError(exc.message) from exc


class PaymentSubmitRequest(BaseModel):
    claimed_amount: int | None = None
    proof_reference: str | None = Field(default=None, max_length=255)
    method: PaymentMethod = PaymentMethod.TRANSFER

    @field_validator("claimed_amount", mode="before")
    @classmethod
    def parse_claimed_amount(cls, value: object) -> int | None:
        return _parse_optional_amount(value)


class PaymentRejectRequest(BaseModel):
    amount: int
    reason: str = Field(min_length=1, max_length=500)
    proof_reference: str | None = Field(default=None, max_length=255)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount_value(cls, value: object) -> int:
        amount = _parse_optional_amount(value)
        if amount is None:
            raise ValueError("amount is required")
        return amount


class PaymentConfirmationRequest(BaseModel):
    accept: bool


class PaymentRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: str
    order_id: str
    amount_input: int
    amount_confirmed: int
    method: PaymentMethod
    status: PaymentRecordStatus
    source: str
    proof_reference: str | None
    note: str | None
    created_by: str
    created_at: datetime


class PaymentRecordListResponse(BaseModel):
    items: list[PaymentRecordResponse]


class PendingConfirmationDetails(BaseModel):
    expected_amount: int
    candidate_amount: int
    provenance: str
    reason: str
    expires_at: datetime


class PaymentOutcomeResponse(BaseModel):
    status: Literal["accepted", "pending_confirmation"]
    order_id: str
    payment_status: PaymentStatus
    paid_amount: int
    remaining_balance: int
    payment: PaymentRecordResponse | None = None
    pending: PendingConfirmationDetails | None = None
