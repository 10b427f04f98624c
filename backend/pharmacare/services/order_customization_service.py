"""
Customer edits to a draft order.

Only the owning customer may edit, and only while the order is unconfirmed and
no payment has been recorded against it. Each call is one transaction: stock
moves, line changes and recomputed totals are committed together.
"""
import logging
from typing import List, Tuple

from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    OrderLockedError,
    ValidationError,
)
from pharmacare.models.order import Order, OrderItem
from pharmacare.models.user import User
from pharmacare.services.inventory_service import release_stock, reserve_stock
from pharmacare.services.order_service import get_order, recalculate_totals, refresh_snapshots

logger = logging.getLogger(__name__)


def _load_editable(db: Session, order_id: int, customer: User) -> Order:
    order = get_order(db, order_id)
    if order.customer_id != customer.id:
        AuditLog.log_access_denied("edit", "order", order_id, customer.id, "Not the owner")
        raise NotFoundError("Order", order_id)
    if order.customization_confirmed:
        raise OrderLockedError(f"Order {order.order_number} is confirmed; its items can no longer change")
    if order.payment is not None:
        raise OrderLockedError(
            f"Payment is recorded for order {order.order_number}; finish confirmation instead of editing"
        )
    return order


def _item(order: Order, product_id: int) -> OrderItem:
    item = order.item_for(product_id)
    if item is None:
        raise NotFoundError("Order item", product_id)
    return item


def _finish(db: Session, order: Order) -> Order:
    refresh_snapshots(db, order)
    recalculate_totals(order)
    db.commit()
    db.refresh(order)
    return order


def increase_quantity(db: Session, order_id: int, product_id: int, customer: User) -> Tuple[Order, bool]:
    """
    Add one unit. Returns (order, changed).

    At the stock limit this is a no-op rather than an error: the client shows
    the control disabled via OrderItem.can_increase.
    """
    order = _load_editable(db, order_id, customer)
    item = _item(order, product_id)

    if item.quantity + 1 > item.stock_snapshot:
        return order, False

    try:
        reserve_stock(db, product_id, 1)
    except InsufficientStockError:
        # Someone else took the last unit; show the new limit instead
        return _finish(db, order), False

    try:
        item.quantity += 1
        _finish(db, order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("increase", "order", order.id, customer.id, changes={"product_id": product_id, "quantity": item.quantity})
    return order, True


def decrease_quantity(db: Session, order_id: int, product_id: int, customer: User) -> Order:
    """Take one unit off. Reaching zero removes the line."""
    order = _load_editable(db, order_id, customer)
    item = _item(order, product_id)

    if item.quantity <= 1:
        return _remove(db, order, item, customer)

    try:
        release_stock(db, product_id, 1)
        item.quantity -= 1
        _finish(db, order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("decrease", "order", order.id, customer.id, changes={"product_id": product_id, "quantity": item.quantity})
    return order


def remove_item(db: Session, order_id: int, product_id: int, customer: User) -> Order:
    order = _load_editable(db, order_id, customer)
    return _remove(db, order, _item(order, product_id), customer)


def _remove(db: Session, order: Order, item: OrderItem, customer: User) -> Order:
    product_id, quantity = item.product_id, item.quantity
    try:
        release_stock(db, product_id, quantity)
        order.items.remove(item)
        _finish(db, order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("remove_item", "order", order.id, customer.id, changes={"product_id": product_id, "released": quantity})
    return order


def replace_items(db: Session, order_id: int, items: List[Tuple[int, int]], customer: User) -> Order:
    """
    Set the quantity of every line at once. Lines left out, or set to 0, are removed.
    Only products already on the order may appear, and no quantity may exceed
    the line's stock snapshot.
    """
    order = _load_editable(db, order_id, customer)

    wanted = {}
    for product_id, quantity in items:
        if product_id in wanted:
            raise ValidationError(f"Product {product_id} listed twice")
        if quantity is None or quantity < 0:
            raise ValidationError(f"Quantity for product {product_id} cannot be negative")
        line = order.item_for(product_id)
        if line is None:
            raise ValidationError(f"Product {product_id} is not part of order {order.order_number}")
        if quantity > line.stock_snapshot:
            raise ValidationError(
                f"Cannot exceed available stock ({line.stock_snapshot}) for {line.name}"
            )
        wanted[product_id] = quantity

    try:
        for line in list(order.items):
            target = wanted.get(line.product_id, 0)
            delta = target - line.quantity
            if delta > 0:
                reserve_stock(db, line.product_id, delta)
            elif delta < 0:
                release_stock(db, line.product_id, -delta)
            if target == 0:
                order.items.remove(line)
            else:
                line.quantity = target
        _finish(db, order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("replace_items", "order", order.id, customer.id, changes={"items": wanted})
    return order


def cancel_order(db: Session, order_id: int, customer: User) -> None:
    """
    Customer cancellation deletes the draft and returns its units to the shelf.
    Confirmed or paid orders can only be cancelled by an admin status change.
    """
    order = _load_editable(db, order_id, customer)
    order_number = order.order_number
    try:
        for item in order.items:
            release_stock(db, item.product_id, item.quantity)
        db.delete(order)
        db.commit()
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("cancel", "order", order_id, customer.id)
    logger.info(f"Draft order {order_number} cancelled by customer {customer.id}")
