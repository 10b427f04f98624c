"""Canonical response envelopes. Every created resource carries a typed id."""
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    id: int
    data: T
    message: Optional[str] = None


class ListEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: List[T]
    total: int
    page: int = 1
    limit: int = 0
