"""
Inventory snapshot reads and the single authoritative stock decrement.

Every flow that places units on an order goes through reserve_stock, which is a
compare-and-swap on the stock column; every flow that takes units back off an
order goes through release_stock. Neither commits: the caller owns the transaction.
"""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from pharmacare.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from pharmacare.models.product import Product

logger = logging.getLogger(__name__)


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def list_products(
    db: Session,
    search: Optional[str] = None,
    prescription_required: Optional[bool] = None,
    limit: int = 100,
) -> List[Product]:
    q = db.query(Product)
    if search:
        q = q.filter(Product.name.ilike(f"%{search}%"))
    if prescription_required is not None:
        q = q.filter(Product.prescription_required == prescription_required)
    return q.order_by(Product.name).limit(limit).all()


def current_stock(db: Session, product_ids: Iterable[int]) -> Dict[int, int]:
    """Fresh stock read straight from the table (bypasses stale identity-map values)."""
    ids = list(set(product_ids))
    if not ids:
        return {}
    rows = db.query(Product.id, Product.stock).filter(Product.id.in_(ids)).all()
    return {pid: stock for pid, stock in rows}


def reserve_stock(db: Session, product_id: int, quantity: int) -> None:
    """
    Take `quantity` units off the shelf, or fail without touching anything.

    Raises:
        ValidationError: quantity is not positive
        NotFoundError: unknown product
        InsufficientStockError: fewer than `quantity` units left at write time
    """
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    updated = (
        db.query(Product)
        .filter(Product.id == product_id, Product.stock >= quantity)
        .update({Product.stock: Product.stock - quantity}, synchronize_session=False)
    )
    if updated == 0:
        if not db.query(Product.id).filter(Product.id == product_id).first():
            raise NotFoundError("Product", product_id)
        logger.info(f"[Inventory] Reservation of {quantity} x product {product_id} lost: not enough stock")
        raise InsufficientStockError(product_id, quantity)

    logger.debug(f"[Inventory] Reserved {quantity} x product {product_id}")


def release_stock(db: Session, product_id: int, quantity: int) -> None:
    """Put units back on the shelf."""
    if quantity <= 0:
        return
    db.query(Product).filter(Product.id == product_id).update(
        {Product.stock: Product.stock + quantity}, synchronize_session=False
    )
    logger.debug(f"[Inventory] Released {quantity} x product {product_id}")
