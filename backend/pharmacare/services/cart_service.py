"""
Server-persisted carts for authenticated customers.

A cart never holds stock: available = product.stock - quantity in this cart,
recomputed on every read. Prescription-gated products cannot be carted; they
go through the prescription workflow instead.
"""
import logging
from collections import OrderedDict
from typing import Iterable, List, Tuple

from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import NotFoundError, ValidationError
from pharmacare.models.cart import CartItem
from pharmacare.models.product import Product
from pharmacare.models.user import User

logger = logging.getLogger(__name__)

Line = Tuple[int, int]


def get_cart(db: Session, user: User) -> List[CartItem]:
    return db.query(CartItem).filter(CartItem.user_id == user.id).order_by(CartItem.id).all()


def _sum_lines(lines: Iterable[Line]) -> "OrderedDict[int, int]":
    merged: "OrderedDict[int, int]" = OrderedDict()
    for product_id, quantity in lines:
        if quantity is None or quantity < 0:
            raise ValidationError(f"Quantity for product {product_id} cannot be negative")
        merged[product_id] = merged.get(product_id, 0) + quantity
    return merged


def _products(db: Session, ids: Iterable[int]) -> dict:
    ids = list(ids)
    if not ids:
        return {}
    return {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}


def replace_cart(db: Session, user: User, lines: Iterable[Line]) -> List[CartItem]:
    """Make the persisted cart exactly `lines`. Quantity 0 drops a line."""
    wanted = _sum_lines(lines)
    products = _products(db, wanted.keys())
    for product_id in wanted:
        product = products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        if product.prescription_required:
            raise ValidationError(f"{product.name} requires a prescription and cannot be added to the cart")

    try:
        db.query(CartItem).filter(CartItem.user_id == user.id).delete(synchronize_session=False)
        for product_id, quantity in wanted.items():
            if quantity > 0:
                db.add(CartItem(user_id=user.id, product_id=product_id, quantity=quantity))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.debug(f"[Cart] user {user.id} cart replaced with {len(wanted)} lines")
    return get_cart(db, user)


def merge_cart(db: Session, user: User, guest_lines: Iterable[Line]) -> Tuple[List[CartItem], List[Line]]:
    """
    Fold a guest cart into the persisted one at login.

    Quantities for the same product are added, then capped at current stock.
    Lines that cannot be kept (unknown product, prescription-gated, out of
    stock) are returned as rejected so the caller can tell the customer.
    """
    guest = _sum_lines(guest_lines)
    existing = {line.product_id: line for line in get_cart(db, user)}
    products = _products(db, set(guest) | set(existing))
    rejected: List[Line] = []

    try:
        for product_id, quantity in guest.items():
            if quantity == 0:
                continue
            product = products.get(product_id)
            if product is None or product.prescription_required:
                rejected.append((product_id, quantity))
                continue

            line = existing.get(product_id)
            combined = quantity + (line.quantity if line else 0)
            capped = min(combined, product.stock)
            if capped < 1:
                rejected.append((product_id, quantity))
                if line is not None:
                    db.delete(line)
                continue
            if capped < combined:
                rejected.append((product_id, combined - capped))

            if line is None:
                line = CartItem(user_id=user.id, product_id=product_id, quantity=capped)
                db.add(line)
                existing[product_id] = line
            else:
                line.quantity = capped
        db.commit()
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action(
        "merge", "cart", user.id, user.id, changes={"guest_lines": len(guest), "rejected": len(rejected)}
    )
    return get_cart(db, user), rejected


def clear_cart(db: Session, user: User) -> None:
    db.query(CartItem).filter(CartItem.user_id == user.id).delete(synchronize_session=False)
    db.commit()
