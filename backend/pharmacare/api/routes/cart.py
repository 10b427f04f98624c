"""Persisted cart for signed-in customers. Guests keep their cart client-side."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_customer, get_db
from pharmacare.models.cart import CartItem
from pharmacare.models.user import User
from pharmacare.schemas.cart import CartItemResponse, CartLine, CartReplace, CartResponse
from pharmacare.services import cart_service

router = APIRouter()


def _cart_response(items: List[CartItem], rejected=()) -> CartResponse:
    return CartResponse(
        items=[
            CartItemResponse(
                product_id=item.product_id,
                name=item.product.name,
                price=item.product.price,
                quantity=item.quantity,
                stock=item.product.stock,
                available=max(item.product.stock - item.quantity, 0),
            )
            for item in items
        ],
        rejected=[CartLine(product_id=pid, quantity=qty) for pid, qty in rejected],
    )


@router.get("", response_model=CartResponse)
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(get_customer)):
    return _cart_response(cart_service.get_cart(db, current_user))


@router.put("", response_model=CartResponse)
def replace_cart(body: CartReplace, db: Session = Depends(get_db), current_user: User = Depends(get_customer)):
    items = cart_service.replace_cart(db, current_user, [(l.product_id, l.quantity) for l in body.items])
    return _cart_response(items)


@router.post("/merge", response_model=CartResponse)
def merge_cart(body: CartReplace, db: Session = Depends(get_db), current_user: User = Depends(get_customer)):
    """Called once at login with the guest cart."""
    items, rejected = cart_service.merge_cart(db, current_user, [(l.product_id, l.quantity) for l in body.items])
    return _cart_response(items, rejected)


@router.delete("", response_model=CartResponse)
def clear_cart(db: Session = Depends(get_db), current_user: User = Depends(get_customer)):
    cart_service.clear_cart(db, current_user)
    return _cart_response([])
