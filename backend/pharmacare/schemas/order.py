from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class Selection(BaseModel):
    product_id: int
    quantity: int


class AssembleOrderRequest(BaseModel):
    prescription_id: int
    selections: List[Selection]


class PosOrderRequest(BaseModel):
    customer_name: str
    customer_email: Optional[str] = None
    payment_method: str = "cash"
    items: List[Selection]


class CheckoutRequest(BaseModel):
    payment_method: str = "card"


class ItemQuantity(BaseModel):
    product_id: int
    quantity: int


class PatchItemsRequest(BaseModel):
    items: List[ItemQuantity]


class StatusUpdateRequest(BaseModel):
    status: str


class OrderItemResponse(BaseModel):
    product_id: int
    name: str
    unit_price: float
    quantity: int
    stock_snapshot: int
    line_total: float
    can_increase: bool

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    customer_id: Optional[int] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    prescription_id: Optional[int] = None
    origin: str
    items: List[OrderItemResponse] = Field(default_factory=list)
    subtotal: float
    shipping: float
    tax: float
    total: float
    payment_method: Optional[str] = None
    status: str
    customization_confirmed: bool
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
