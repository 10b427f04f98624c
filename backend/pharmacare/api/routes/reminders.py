"""Medication reminders set by customers on their orders."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_current_user, get_db
from pharmacare.models.user import User
from pharmacare.schemas.common import Envelope, ListEnvelope
from pharmacare.schemas.reminder import ReminderCreate, ReminderResponse
from pharmacare.services import reminder_service
from pharmacare.services.order_service import get_order_for_user

router = APIRouter()


@router.post("", response_model=Envelope[ReminderResponse], status_code=201)
def create_reminder(body: ReminderCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = get_order_for_user(db, body.order_id, current_user)
    reminder = reminder_service.schedule_reminder(
        db, order, current_user, body.reminder_date, body.reminder_time, body.notes
    )
    return Envelope[ReminderResponse](
        id=reminder.id, data=ReminderResponse.model_validate(reminder), message="Reminder set successfully!"
    )


@router.get("/mine", response_model=ListEnvelope[ReminderResponse])
def my_reminders(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    reminders = reminder_service.list_reminders(db, current_user)
    return ListEnvelope[ReminderResponse](
        data=[ReminderResponse.model_validate(r) for r in reminders],
        total=len(reminders),
        limit=len(reminders),
    )


@router.delete("/{reminder_id}", response_model=Envelope[ReminderResponse])
def cancel_reminder(reminder_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    reminder = reminder_service.cancel_reminder(db, reminder_id, current_user)
    return Envelope[ReminderResponse](id=reminder.id, data=ReminderResponse.model_validate(reminder), message="Reminder cancelled")
