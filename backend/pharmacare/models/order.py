"""
Order and its line items.

Draft order: customization_confirmed = False, line items editable by the customer.
Confirmation is one-way (False -> True) and happens only after a payment is recorded.
"""
from decimal import Decimal

from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmacare.db.base import Base

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_SHIPPED = "shipped"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
STATUS_COMPLETED = "completed"
ORDER_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_SHIPPED,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
)

ORIGIN_PRESCRIPTION = "prescription"
ORIGIN_ONLINE = "online"
ORIGIN_POS = "pos"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_email = Column(String(255), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.id", ondelete="SET NULL"), nullable=True, index=True)
    origin = Column(String(32), nullable=False, default=ORIGIN_ONLINE)  # prescription | online | pos

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    shipping = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 4), nullable=False, default=0)  # 0 unless the origin charges tax
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(64), nullable=True)

    status = Column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    customization_confirmed = Column(Boolean, nullable=False, default=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    payment = relationship("Payment", back_populates="order", uselist=False)
    prescription = relationship("Prescription", backref="orders")

    @property
    def is_editable(self) -> bool:
        """Line items change only before confirmation and before any payment is taken."""
        return not self.customization_confirmed and self.payment is None

    def item_for(self, product_id: int):
        return next((item for item in self.items if item.product_id == product_id), None)

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status} confirmed={self.customization_confirmed}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Units held by this line + units still on the shelf, as of the last read
    stock_snapshot = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return Decimal(str(self.unit_price)) * self.quantity

    @property
    def can_increase(self) -> bool:
        return self.quantity < self.stock_snapshot
