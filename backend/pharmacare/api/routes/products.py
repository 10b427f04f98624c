"""Read-only catalog: the inventory snapshot every other flow checks against."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_db
from pharmacare.schemas.common import ListEnvelope
from pharmacare.schemas.product import ProductResponse
from pharmacare.services import inventory_service

router = APIRouter()


@router.get("", response_model=ListEnvelope[ProductResponse])
def list_products(
    search: Optional[str] = Query(None),
    prescription_required: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    products = inventory_service.list_products(db, search, prescription_required, limit)
    return ListEnvelope[ProductResponse](
        data=[ProductResponse.model_validate(p) for p in products],
        total=len(products),
        limit=limit,
    )


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return inventory_service.get_product(db, product_id)
