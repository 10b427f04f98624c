from typing import List
from pydantic import BaseModel


class CartLine(BaseModel):
    product_id: int
    quantity: int


class CartReplace(BaseModel):
    items: List[CartLine]


class CartItemResponse(BaseModel):
    product_id: int
    name: str
    price: float
    quantity: int
    stock: int
    available: int  # stock minus what this cart holds

    class Config:
        from_attributes = True


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    rejected: List[CartLine] = []
