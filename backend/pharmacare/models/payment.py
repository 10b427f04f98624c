"""
Payment claim recorded against an order. Created once, never mutated.
No gateway: the row is the record that the customer paid.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmacare.db.base import Base

TYPE_PRESCRIPTION = "prescription"
TYPE_POS = "pos"
TYPE_ONLINE = "online"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    # unique: at most one payment per order
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(64), nullable=False)
    payment_type = Column(String(32), nullable=False)  # prescription | pos | online
    idempotency_key = Column(String(128), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="payment")
