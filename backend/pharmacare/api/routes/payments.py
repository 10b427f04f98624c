"""Recorded payment claims. Read-only: payments are created by POST /orders/{id}/pay."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_admin, get_db
from pharmacare.models.user import User
from pharmacare.schemas.common import ListEnvelope
from pharmacare.schemas.payment import PaymentResponse
from pharmacare.services import payment_service

router = APIRouter()


@router.get("", response_model=ListEnvelope[PaymentResponse])
def list_payments(
    order_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin),
):
    payments = payment_service.list_payments(db, order_id)
    return ListEnvelope[PaymentResponse](
        data=[PaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
        limit=len(payments),
    )
