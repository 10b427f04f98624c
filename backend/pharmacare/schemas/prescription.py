from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class PrescriptionResponse(BaseModel):
    id: int
    customer_id: int
    name: str
    email: str
    phone: str
    address: str
    city: str
    duration: str
    gender: str
    payment_method: str
    frequency: str
    has_allergies: bool
    allergies: Optional[str] = None
    substitutes: bool
    notes: Optional[str] = None
    documents: List[str] = []
    status: str
    rejection_reason: Optional[str] = None
    verified: bool
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransitionRequest(BaseModel):
    """Version the pharmacist last saw. Stale versions are refused."""
    version: int = Field(..., ge=1)


class RejectRequest(TransitionRequest):
    # Blank reasons are refused by the service with a ValidationError, not a 422
    reason: str = ""
