from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, Field

from pharmacare.schemas.order import OrderResponse


class ReminderChoice(BaseModel):
    reminder_date: date
    reminder_time: time


class PayRequest(BaseModel):
    payment_method: Optional[str] = None  # defaults to the order's method
    idempotency_key: str = Field(..., min_length=8, max_length=128)
    reminder: Optional[ReminderChoice] = None


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    amount: float
    method: str
    payment_type: str
    idempotency_key: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayResult(BaseModel):
    order: OrderResponse
    payment: PaymentResponse
    reminder_scheduled: Optional[bool] = None  # None when no reminder was asked for
    reused_payment: bool = False
