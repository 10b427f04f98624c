from typing import Optional
from pydantic import BaseModel


class ProductResponse(BaseModel):
    id: int
    name: str
    price: float
    stock: int
    prescription_required: bool
    category: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True
