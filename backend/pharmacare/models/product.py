from sqlalchemy import Column, Integer, String, Numeric, Boolean, Text, CheckConstraint
from pharmacare.db.base import Base


class Product(Base):
    """
    Catalog product, as exposed by the inventory collaborator.

    stock is the single authoritative count: it is decremented when units are
    placed on an order and incremented when they leave one (see inventory_service).
    """
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)  # LKR per unit
    stock = Column(Integer, nullable=False, default=0)
    prescription_required = Column(Boolean, nullable=False, default=False)
    category = Column(String(128), nullable=True)
    image = Column(String(512), nullable=True)
    description = Column(Text, nullable=True)
