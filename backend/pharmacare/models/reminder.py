from sqlalchemy import Column, Integer, String, ForeignKey, Date, Time, DateTime, Text
from sqlalchemy.orm import relationship, backref
from sqlalchemy.sql import func
from pharmacare.db.base import Base

STATUS_ACTIVE = "active"
STATUS_TRIGGERED = "triggered"
STATUS_CANCELLED = "cancelled"


class Reminder(Base):
    """Medication reminder a customer attaches to an order. Scanned by the reminder loop."""
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_date = Column(Date, nullable=False)
    reminder_time = Column(Time, nullable=False)
    status = Column(String(32), nullable=False, default=STATUS_ACTIVE, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    triggered_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", backref=backref("reminders", cascade="all, delete-orphan"))
