"""Order pricing, lookups, admin listing and admin status transitions."""
import logging
import secrets
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from pharmacare.core.permissions import ensure_owner_or_staff
from pharmacare.models.order import (
    Order,
    ORDER_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_DELIVERED,
    STATUS_SHIPPED,
)
from pharmacare.models.user import User
from pharmacare.services.inventory_service import current_stock, release_stock

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Admin operational view: only orders in active fulfillment
ADMIN_VISIBLE_STATUSES = (STATUS_CONFIRMED, STATUS_SHIPPED, STATUS_DELIVERED)

ADMIN_TRANSITIONS = {
    STATUS_CONFIRMED: (STATUS_SHIPPED, STATUS_CANCELLED),
    STATUS_SHIPPED: (STATUS_DELIVERED, STATUS_CANCELLED),
    STATUS_DELIVERED: (STATUS_COMPLETED,),
}


def money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_order_number() -> str:
    return f"ORD-{secrets.token_hex(4).upper()}"


def recalculate_totals(order: Order) -> None:
    """subtotal from the lines, tax from the order's rate, total = subtotal + shipping + tax."""
    subtotal = sum((item.line_total for item in order.items), Decimal("0"))
    order.subtotal = money(subtotal)
    order.shipping = money(order.shipping)
    order.tax = money(order.subtotal * Decimal(str(order.tax_rate or 0)))
    order.total = order.subtotal + order.shipping + order.tax


def refresh_snapshots(db: Session, order: Order) -> None:
    """Re-read shelf stock so each line knows how far it may still grow."""
    stock = current_stock(db, (item.product_id for item in order.items))
    for item in order.items:
        item.stock_snapshot = item.quantity + stock.get(item.product_id, 0)


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def get_order_for_user(db: Session, order_id: int, user: User) -> Order:
    """Order visible to its customer and to staff. Anyone else gets a 404."""
    order = get_order(db, order_id)
    ensure_owner_or_staff(user, order.customer_id, "order", order.id)
    return order


def list_customer_orders(db: Session, user: User) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.customer_id == user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_admin_orders(
    db: Session,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Order], int]:
    """
    Paginated admin view. pending, completed and cancelled orders never appear,
    even when asked for by name.
    """
    if status and status not in ADMIN_VISIBLE_STATUSES:
        return [], 0

    q = db.query(Order).filter(Order.status.in_(ADMIN_VISIBLE_STATUSES))
    if status:
        q = q.filter(Order.status == status)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Order.order_number.ilike(term),
                Order.customer_email.ilike(term),
                Order.customer_name.ilike(term),
            )
        )

    total = q.count()
    rows = (
        q.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def update_status(db: Session, order_id: int, new_status: str, admin: User) -> Order:
    """
    Admin fulfillment transitions: confirmed -> shipped -> delivered -> completed,
    or confirmed/shipped -> cancelled. Cancelling puts the units back on the shelf;
    the payment row stays as it is and the refund is flagged for follow-up.
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status '{new_status}'")

    order = get_order(db, order_id)
    previous = order.status
    if new_status not in ADMIN_TRANSITIONS.get(previous, ()):
        raise InvalidTransitionError("order", previous, new_status)

    try:
        if new_status == STATUS_CANCELLED:
            for item in order.items:
                release_stock(db, item.product_id, item.quantity)
        order.status = new_status
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action(
        "status", "order", order.id, admin.id, changes={"from": previous, "to": new_status}
    )
    if new_status == STATUS_CANCELLED and order.payment is not None:
        AuditLog.log_payment_anomaly(
            order.id, order.payment.id, f"Confirmed order cancelled by admin; refund of {order.payment.amount} owed"
        )
    logger.info(f"Order {order.order_number} moved {previous} -> {new_status} by admin {admin.id}")
    return order
