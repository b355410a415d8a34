import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from orderdesk.clock import normalize_event_date
from orderdesk.errors import ValidationError
from orderdesk.models.order import OrderStatus, PaymentStatus
from orderdesk.models.order_event import OrderEventType


class OrderItem(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=1)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()


class OrderCreate(BaseModel):
    customer_name: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=50)
    customer_chat_id: str | None = Field(default=None, max_length=64)

    event_date: date
    delivery_time: str | None = Field(default=None, max_length=32)
    delivery_method: str | None = Field(default=None, max_length=64)

    items: list[OrderItem] = Field(min_length=1)
    product_total: int = Field(ge=0)
    packaging_fee: int = Field(default=0, ge=0)
    delivery_fee: int = Field(default=0, ge=0)

    @field_validator("event_date", mode="before")
    @classmethod
    def parse_event_date(cls, value: object) -> date:
        try:
            return normalize_event_date(value)  # type: ignore[arg-type]
        except ValidationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("customer_name", "customer_phone", "delivery_time", "delivery_method")
    @classmethod
    def strip_strings(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.strip()


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_name: str | None
    customer_phone: str | None
    customer_chat_id: str | None
    event_date: date
    delivery_time: str | None
    delivery_method: str | None
    status: OrderStatus
    items: list[OrderItem]
    product_total: int
    packaging_fee: int
    delivery_fee: int
    total_amount: int
    paid_amount: int
    remaining_balance: int
    payment_status: PaymentStatus
    minimum_deposit: int
    cancel_reason: str | None
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    items: list[OrderResponse]


class OrderCancelRequest(BaseModel):
    reason: str = Field(default="Cancelled by admin", min_length=1, max_length=500)


class OrderEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: str
    type: OrderEventType
    message: str
    payload: dict
    created_at: datetime


class OrderEventListResponse(BaseModel):
    items: list[OrderEventResponse]
