from cartstore.data.models.cart import (
    CART_STATUS_TRANSITIONS,
    Cart,
    CartStatus,
    OwnerKind,
    cart_id_key,
)
from cartstore.data.models.cart_item import CartItem

__all__ = [
    "CART_STATUS_TRANSITIONS",
    "Cart",
    "CartItem",
    "CartStatus",
    "OwnerKind",
    "cart_id_key",
]
