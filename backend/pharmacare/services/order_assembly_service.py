"""
Order creation: pharmacist assembly from an approved prescription, customer
checkout from the cart, and pharmacist point-of-sale.

All three are all-or-nothing. Stock for every line is reserved inside the same
transaction that inserts the order; any failure rolls the whole thing back, so
no order and no reservation survives a rejected call.
"""
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.config import settings
from pharmacare.core.exceptions import ConflictError, NotFoundError, ValidationError
from pharmacare.models.cart import CartItem
from pharmacare.models.order import (
    Order,
    OrderItem,
    ORIGIN_ONLINE,
    ORIGIN_POS,
    ORIGIN_PRESCRIPTION,
    STATUS_PENDING,
)
from pharmacare.models.prescription import Prescription, STATUS_APPROVED
from pharmacare.models.product import Product
from pharmacare.models.user import User
from pharmacare.services.inventory_service import reserve_stock
from pharmacare.services.order_service import (
    generate_order_number,
    money,
    recalculate_totals,
    refresh_snapshots,
)

logger = logging.getLogger(__name__)


def _normalize_selections(selections: Iterable[Tuple[int, int]]) -> "OrderedDict[int, int]":
    """Sum duplicate product ids, refuse non-positive quantities."""
    merged: "OrderedDict[int, int]" = OrderedDict()
    for product_id, quantity in selections:
        if quantity is None or quantity < 1:
            raise ValidationError(f"Quantity for product {product_id} must be at least 1")
        merged[product_id] = merged.get(product_id, 0) + quantity
    if not merged:
        raise ValidationError("At least one item is required")
    return merged


def _load_products(db: Session, product_ids: Iterable[int]) -> dict:
    ids = list(product_ids)
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}
    for product_id in ids:
        if product_id not in products:
            raise NotFoundError("Product", product_id)
    return products


def _check_stock(products: dict, wanted: "OrderedDict[int, int]") -> None:
    """Advisory pre-check against the snapshot; reserve_stock is the real guard."""
    for product_id, quantity in wanted.items():
        product = products[product_id]
        if quantity > product.stock:
            raise ValidationError(
                f"Requested {quantity} x {product.name} but only {product.stock} in stock"
            )


def _place_order(
    db: Session,
    wanted: "OrderedDict[int, int]",
    products: dict,
    *,
    origin: str,
    customer_id: Optional[int],
    customer_email: Optional[str],
    customer_name: Optional[str],
    payment_method: Optional[str],
    shipping: Decimal,
    tax_rate: Decimal,
    prescription_id: Optional[int] = None,
) -> Order:
    """Insert the order and reserve its stock. Does not commit."""
    order = Order(
        order_number=generate_order_number(),
        customer_id=customer_id,
        customer_email=customer_email,
        customer_name=customer_name,
        prescription_id=prescription_id,
        origin=origin,
        payment_method=payment_method,
        shipping=money(shipping),
        tax_rate=tax_rate,
        status=STATUS_PENDING,
        customization_confirmed=False,
    )
    for product_id, quantity in wanted.items():
        reserve_stock(db, product_id, quantity)
        product = products[product_id]
        order.items.append(
            OrderItem(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
                quantity=quantity,
            )
        )
    db.add(order)
    refresh_snapshots(db, order)
    recalculate_totals(order)
    return order


def assemble_order(
    db: Session,
    prescription_id: int,
    selections: List[Tuple[int, int]],
    pharmacist: User,
) -> Order:
    """
    Turn an approved prescription into a draft order for its customer.

    Raises:
        NotFoundError: prescription or product missing
        ValidationError: prescription not approved, bad quantity, quantity above stock
        InsufficientStockError: stock ran out between the check and the reservation
        ConflictError: the prescription already has an order
    """
    prescription = db.query(Prescription).filter(Prescription.id == prescription_id).first()
    if not prescription:
        raise NotFoundError("Prescription", prescription_id)
    if prescription.status != STATUS_APPROVED:
        raise ValidationError(
            f"Prescription #{prescription.id} is {prescription.status}; only approved prescriptions can be fulfilled"
        )
    if db.query(Order.id).filter(Order.prescription_id == prescription.id).first():
        raise ConflictError(f"Prescription #{prescription.id} already has an order")

    wanted = _normalize_selections(selections)
    products = _load_products(db, wanted.keys())
    _check_stock(products, wanted)

    try:
        order = _place_order(
            db,
            wanted,
            products,
            origin=ORIGIN_PRESCRIPTION,
            customer_id=prescription.customer_id,
            customer_email=prescription.email,
            customer_name=prescription.name,
            payment_method=prescription.payment_method,
            shipping=settings.SHIPPING_FEE,
            tax_rate=Decimal("0"),
            prescription_id=prescription.id,
        )
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action(
        "assemble",
        "order",
        order.id,
        pharmacist.id,
        changes={"prescription_id": prescription.id, "items": dict(wanted), "subtotal": str(order.subtotal)},
    )
    logger.info(
        f"Order {order.order_number} assembled from prescription #{prescription.id} "
        f"by pharmacist {pharmacist.id} ({len(wanted)} lines)"
    )
    return order


def checkout_cart(db: Session, customer: User, payment_method: str) -> Order:
    """Non-prescription purchase: the customer's persisted cart becomes a draft order."""
    lines = db.query(CartItem).filter(CartItem.user_id == customer.id).order_by(CartItem.id).all()
    if not lines:
        raise ValidationError("Cart is empty")

    wanted = _normalize_selections((line.product_id, line.quantity) for line in lines)
    products = _load_products(db, wanted.keys())
    gated = [p.name for p in products.values() if p.prescription_required]
    if gated:
        raise ValidationError(
            f"Prescription required for: {', '.join(gated)}. Upload a prescription instead."
        )
    _check_stock(products, wanted)

    try:
        order = _place_order(
            db,
            wanted,
            products,
            origin=ORIGIN_ONLINE,
            customer_id=customer.id,
            customer_email=customer.email,
            customer_name=customer.name,
            payment_method=payment_method,
            shipping=settings.SHIPPING_FEE,
            tax_rate=settings.CHECKOUT_TAX_RATE,
        )
        for line in lines:
            db.delete(line)
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("checkout", "order", order.id, customer.id, changes={"items": dict(wanted)})
    logger.info(f"Order {order.order_number} created at checkout for customer {customer.id}")
    return order


def create_pos_order(
    db: Session,
    pharmacist: User,
    customer_name: str,
    customer_email: Optional[str],
    payment_method: str,
    selections: List[Tuple[int, int]],
) -> Order:
    """Walk-in counter sale. No shipping, no tax."""
    if not customer_name or not customer_name.strip():
        raise ValidationError("Customer name is required")

    wanted = _normalize_selections(selections)
    products = _load_products(db, wanted.keys())
    _check_stock(products, wanted)

    try:
        order = _place_order(
            db,
            wanted,
            products,
            origin=ORIGIN_POS,
            customer_id=None,
            customer_email=customer_email,
            customer_name=customer_name.strip(),
            payment_method=payment_method,
            shipping=Decimal("0"),
            tax_rate=Decimal("0"),
        )
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    AuditLog.log_action("pos_sale", "order", order.id, pharmacist.id, changes={"items": dict(wanted)})
    logger.info(f"POS order {order.order_number} created by pharmacist {pharmacist.id}")
    return order
