from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel


class ReminderCreate(BaseModel):
    order_id: int
    reminder_date: date
    reminder_time: time
    notes: Optional[str] = None


class ReminderResponse(BaseModel):
    id: int
    order_id: int
    user_id: int
    reminder_date: date
    reminder_time: time
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    triggered_at: Optional[datetime] = None

    class Config:
        from_attributes = True
