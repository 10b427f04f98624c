"""Medication reminders attached to orders."""
import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import NotFoundError, ValidationError
from pharmacare.models.order import Order
from pharmacare.models.reminder import Reminder, STATUS_ACTIVE, STATUS_CANCELLED
from pharmacare.models.user import User

logger = logging.getLogger(__name__)


def schedule_reminder(
    db: Session,
    order: Order,
    user: User,
    reminder_date: date,
    reminder_time: time,
    notes: Optional[str] = None,
) -> Reminder:
    if reminder_date is None or reminder_time is None:
        raise ValidationError("Reminder date and time are required")

    if not notes:
        names = ", ".join(item.name for item in order.items)
        notes = f"Reminder for order {order.order_number} - {names}" if names else f"Reminder for order {order.order_number}"

    reminder = Reminder(
        order_id=order.id,
        user_id=user.id,
        reminder_date=reminder_date,
        reminder_time=reminder_time,
        status=STATUS_ACTIVE,
        notes=notes,
    )
    db.add(reminder)
    db.commit()
    db.refresh(reminder)

    AuditLog.log_action("schedule", "reminder", reminder.id, user.id, changes={"order_id": order.id})
    logger.info(f"Reminder #{reminder.id} set for order {order.order_number} on {reminder_date} {reminder_time}")
    return reminder


def list_reminders(db: Session, user: User) -> List[Reminder]:
    return (
        db.query(Reminder)
        .filter(Reminder.user_id == user.id)
        .order_by(Reminder.reminder_date, Reminder.reminder_time)
        .all()
    )


def cancel_reminder(db: Session, reminder_id: int, user: User) -> Reminder:
    reminder = (
        db.query(Reminder)
        .filter(Reminder.id == reminder_id, Reminder.user_id == user.id)
        .first()
    )
    if not reminder:
        raise NotFoundError("Reminder", reminder_id)
    reminder.status = STATUS_CANCELLED
    db.commit()
    db.refresh(reminder)
    AuditLog.log_action("cancel", "reminder", reminder.id, user.id)
    return reminder
