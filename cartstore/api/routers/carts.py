#cartstore/api/routers/carts.py
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from cartstore.api.dependencies import Owner, get_cart_service, get_owner
from cartstore.data.models.cart import Cart
from cartstore.domain.schemas import (
    AddItemIn,
    CartSummary,
    CartValidationResult,
    ExtendExpiryIn,
    MessageOut,
    MigrateCartIn,
    UpdateItemIn,
)
from cartstore.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=Cart)
def get_cart(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_cart(owner.user_id, owner.session_id)


@router.post("/items", response_model=Cart)
def add_item(
    payload: AddItemIn,
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    return svc.add_item(
        user_id=owner.user_id,
        session_id=owner.session_id,
        product_id=payload.product_id,
        sku=payload.sku,
        name=payload.name,
        price=payload.price,
        quantity=payload.quantity,
    )


@router.put("/items/{product_id}", response_model=Cart)
def update_item(
    product_id: str,
    payload: UpdateItemIn,
    sku: Optional[str] = Query(default=None),
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    return svc.update_item(owner.user_id, owner.session_id, product_id, payload.quantity, sku)


@router.delete("/items/{product_id}", response_model=Cart)
def remove_item(
    product_id: str,
    sku: Optional[str] = Query(default=None),
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    return svc.remove_item(owner.user_id, owner.session_id, product_id, sku)


@router.post("/clear", response_model=MessageOut)
def clear_cart(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    svc.clear_cart(owner.user_id, owner.session_id)
    return {"message": "Cart cleared successfully"}


@router.post("/migrate", response_model=Cart)
def migrate_guest_cart(
    payload: MigrateCartIn,
    svc: CartService = Depends(get_cart_service),
):
    """Called at login: moves the session's guest cart onto the user."""
    return svc.migrate_guest_cart(payload.session_id, payload.user_id)


@router.get("/validate", response_model=CartValidationResult)
def validate_cart(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    cart = svc.get_cart(owner.user_id, owner.session_id)
    return svc.validate_cart(cart)


@router.post("/extend-expiry", response_model=Cart)
def extend_expiry(
    payload: ExtendExpiryIn,
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    return svc.extend_expiry(owner.user_id, owner.session_id, timedelta(hours=payload.hours))


@router.get("/summary", response_model=CartSummary)
def get_summary(
    owner: Owner = Depends(get_owner),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_summary(owner.user_id, owner.session_id)
