"""
Prescription: customer-submitted request for prescription-gated items.
Status flow: pending -> processing -> approved | rejected. Pharmacist-driven only.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from pharmacare.db.base import Base

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
TERMINAL_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Intake answers
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(64), nullable=False)
    address = Column(String(512), nullable=False)
    city = Column(String(128), nullable=False)
    duration = Column(String(64), nullable=False)
    gender = Column(String(32), nullable=False)
    payment_method = Column(String(64), nullable=False)
    frequency = Column(String(32), nullable=False)  # one | ongoing
    has_allergies = Column(Boolean, nullable=False, default=False)
    allergies = Column(Text, nullable=True)
    substitutes = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    documents = Column(JSON, nullable=False, default=list)  # relative upload paths

    status = Column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    rejection_reason = Column(Text, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    # Optimistic concurrency token: every transition must present the current value
    version = Column(Integer, nullable=False, default=1)
    reviewed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("User", foreign_keys=[customer_id], backref="prescriptions")

    def __repr__(self):
        return f"<Prescription id={self.id} status={self.status} v{self.version}>"
