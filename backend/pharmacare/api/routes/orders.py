"""
Orders: pharmacist assembly, customer customization, checkout, payment and
admin fulfillment.

Route order matters: the fixed paths (/mine, /admin, /checkout, ...) are
declared before /{order_id}.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_admin, get_current_user, get_customer, get_db, get_pharmacist
from pharmacare.models.user import User
from pharmacare.schemas.common import Envelope, ListEnvelope
from pharmacare.schemas.order import (
    AssembleOrderRequest,
    CheckoutRequest,
    OrderResponse,
    PatchItemsRequest,
    PosOrderRequest,
    StatusUpdateRequest,
)
from pharmacare.schemas.payment import PaymentResponse, PayRequest, PayResult
from pharmacare.services import (
    order_assembly_service,
    order_customization_service,
    order_service,
    payment_service,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _envelope(order, message: Optional[str] = None) -> Envelope[OrderResponse]:
    return Envelope[OrderResponse](id=order.id, data=OrderResponse.model_validate(order), message=message)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

@router.post("/from-prescription", response_model=Envelope[OrderResponse], status_code=201)
def assemble_from_prescription(
    body: AssembleOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    """Pharmacist picks catalog items for an approved prescription. All or nothing."""
    order = order_assembly_service.assemble_order(
        db,
        body.prescription_id,
        [(s.product_id, s.quantity) for s in body.selections],
        current_user,
    )
    return _envelope(order, "Order created from prescription")


@router.post("/checkout", response_model=Envelope[OrderResponse], status_code=201)
def checkout(
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer),
):
    """Turn the customer's cart into a draft order (non-prescription products only)."""
    order = order_assembly_service.checkout_cart(db, current_user, body.payment_method)
    return _envelope(order, "Order created")


@router.post("/pos", response_model=Envelope[OrderResponse], status_code=201)
def point_of_sale(
    body: PosOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    order = order_assembly_service.create_pos_order(
        db,
        current_user,
        body.customer_name,
        body.customer_email,
        body.payment_method,
        [(s.product_id, s.quantity) for s in body.items],
    )
    return _envelope(order, "POS order created")


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@router.get("/mine", response_model=ListEnvelope[OrderResponse])
def my_orders(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    orders = order_service.list_customer_orders(db, current_user)
    return ListEnvelope[OrderResponse](
        data=[OrderResponse.model_validate(o) for o in orders],
        total=len(orders),
        limit=len(orders),
    )


@router.get("/admin", response_model=ListEnvelope[OrderResponse])
def admin_orders(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin),
):
    """Active fulfillment only: confirmed, shipped, delivered."""
    orders, total = order_service.list_admin_orders(db, status, search, page, limit)
    return ListEnvelope[OrderResponse](
        data=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{order_id}", response_model=Envelope[OrderResponse])
def get_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _envelope(order_service.get_order_for_user(db, order_id, current_user))


# ---------------------------------------------------------------------------
# Customer customization (draft orders only)
# ---------------------------------------------------------------------------

@router.post("/{order_id}/items/{product_id}/increase", response_model=Envelope[OrderResponse])
def increase_item(
    order_id: int,
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer),
):
    order, changed = order_customization_service.increase_quantity(db, order_id, product_id, current_user)
    return _envelope(order, None if changed else "Maximum available stock reached")


@router.post("/{order_id}/items/{product_id}/decrease", response_model=Envelope[OrderResponse])
def decrease_item(
    order_id: int,
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer),
):
    return _envelope(order_customization_service.decrease_quantity(db, order_id, product_id, current_user))


@router.delete("/{order_id}/items/{product_id}", response_model=Envelope[OrderResponse])
def remove_item(
    order_id: int,
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer),
):
    order = order_customization_service.remove_item(db, order_id, product_id, current_user)
    return _envelope(order, "Item removed")


@router.patch("/{order_id}/items", response_model=Envelope[OrderResponse])
def replace_items(
    order_id: int,
    body: PatchItemsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer),
):
    order = order_customization_service.replace_items(
        db, order_id, [(i.product_id, i.quantity) for i in body.items], current_user
    )
    return _envelope(order, "Order updated")


@router.delete("/{order_id}")
def cancel_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_customer)):
    order_customization_service.cancel_order(db, order_id, current_user)
    return {"success": True, "id": order_id, "message": "Order cancelled"}


# ---------------------------------------------------------------------------
# Payment and confirmation
# ---------------------------------------------------------------------------

@router.post("/{order_id}/pay", response_model=Envelope[PayResult])
def pay_order(
    order_id: int,
    body: PayRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Record the payment, then confirm. Safe to retry with the same idempotency
    key: an existing payment is reused, never duplicated.
    """
    coordinator = payment_service.PaymentCaptureCoordinator(db)
    outcome = coordinator.pay_and_confirm(
        order_id,
        current_user,
        idempotency_key=body.idempotency_key,
        payment_method=body.payment_method,
        reminder_date=body.reminder.reminder_date if body.reminder else None,
        reminder_time=body.reminder.reminder_time if body.reminder else None,
    )
    result = PayResult(
        order=OrderResponse.model_validate(outcome.order),
        payment=PaymentResponse.model_validate(outcome.payment),
        reminder_scheduled=outcome.reminder_scheduled,
        reused_payment=outcome.reused_payment,
    )
    message = "Order confirmed"
    if outcome.reminder_scheduled is False:
        message = "Order confirmed, but the reminder could not be set"
    return Envelope[PayResult](id=outcome.order.id, data=result, message=message)


@router.patch("/{order_id}/confirm", response_model=Envelope[OrderResponse])
def confirm_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Finish confirmation for an order whose payment is already recorded."""
    order = payment_service.confirm_with_recorded_payment(db, order_id, current_user)
    return _envelope(order, "Order confirmed")


# ---------------------------------------------------------------------------
# Admin fulfillment
# ---------------------------------------------------------------------------

@router.patch("/{order_id}/status", response_model=Envelope[OrderResponse])
def update_status(
    order_id: int,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin),
):
    order = order_service.update_status(db, order_id, body.status, current_user)
    return _envelope(order, f"Order {order.status}")
