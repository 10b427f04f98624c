"""
Reminder scanner: background loop that fires due medication reminders.

1. Every REMINDER_SCAN_INTERVAL_SECONDS, find active reminders whose date and
   time have passed
2. Mark each one triggered and log it

Delivery to the customer (push, SMS) is not part of this service; the
triggered status is what the dashboard polls for.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import sessionmaker

from pharmacare.core.config import settings
from pharmacare.db.session import SessionLocal
from pharmacare.models.reminder import Reminder, STATUS_ACTIVE, STATUS_TRIGGERED

logger = logging.getLogger(__name__)


def scan_due_reminders(session_factory: sessionmaker = SessionLocal, now: Optional[datetime] = None) -> int:
    """
    Mark every active reminder due at or before `now` (local wall clock) as triggered.

    Returns:
        Number of reminders triggered in this pass
    """
    now = now or datetime.now()
    db = session_factory()
    triggered = 0

    try:
        due = (
            db.query(Reminder)
            .filter(Reminder.status == STATUS_ACTIVE)
            .filter(
                or_(
                    Reminder.reminder_date < now.date(),
                    and_(Reminder.reminder_date == now.date(), Reminder.reminder_time <= now.time()),
                )
            )
            .all()
        )
        for reminder in due:
            reminder.status = STATUS_TRIGGERED
            reminder.triggered_at = datetime.now(timezone.utc)
            logger.info(
                f"[Reminders] Reminder #{reminder.id} for order {reminder.order_id} "
                f"(user {reminder.user_id}) is due: {reminder.notes}"
            )
            triggered += 1
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"[Reminders] Scanner error: {e}")
    finally:
        db.close()

    return triggered


_scheduler_task: Optional[asyncio.Task] = None


async def _reminder_loop():
    logger.info(f"[Reminders] Scheduler started. Interval: {settings.REMINDER_SCAN_INTERVAL_SECONDS}s")
    while True:
        try:
            # Scanner uses a blocking DB session; keep it off the event loop
            loop = asyncio.get_running_loop()
            count = await loop.run_in_executor(None, scan_due_reminders)
            if count:
                logger.info(f"[Reminders] Triggered {count} reminders")
        except Exception as e:
            logger.error(f"[Reminders] Scheduler error: {e}")
        await asyncio.sleep(settings.REMINDER_SCAN_INTERVAL_SECONDS)


def start_reminder_scheduler():
    """Start the background scanner. Called from the FastAPI lifespan."""
    global _scheduler_task
    if _scheduler_task is not None and not _scheduler_task.done():
        return
    _scheduler_task = asyncio.create_task(_reminder_loop())
    logger.info("[Reminders] Reminder scheduler initialized")


def stop_reminder_scheduler():
    """Cancel the scanner. Called from the FastAPI lifespan on shutdown."""
    global _scheduler_task
    if _scheduler_task is not None:
        _scheduler_task.cancel()
        _scheduler_task = None
    logger.info("[Reminders] Scheduler stopped")
