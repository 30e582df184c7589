#cartstore/data/models/cart.py
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from cartstore.data.models.cart_item import CartItem, new_id, utcnow
from cartstore.domain.errors import CartConflictError, InvalidStatusTransitionError
from cartstore.utils.settings import CART_CURRENCY, CART_TTL_SECONDS


class CartStatus(str, Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"


# abandoned and converted are terminal
CART_STATUS_TRANSITIONS = {
    CartStatus.ACTIVE: frozenset({CartStatus.ABANDONED, CartStatus.CONVERTED}),
    CartStatus.ABANDONED: frozenset(),
    CartStatus.CONVERTED: frozenset(),
}


class OwnerKind(str, Enum):
    """Who a cart belongs to: a registered user or an anonymous session."""

    USER = "user"
    SESSION = "session"

    def key(self, owner_id: str) -> str:
        return f"cart:{self.value}:{owner_id}"


CART_ID_KEY_PREFIX = "cart:id:"


def cart_id_key(cart_id: str) -> str:
    return f"{CART_ID_KEY_PREFIX}{cart_id}"


def default_expiry() -> datetime:
    return utcnow() + timedelta(seconds=CART_TTL_SECONDS)


class Cart(BaseModel):
    """
    A shopping cart, stored in Redis as one JSON record.

    Exactly one of user_id / session_id is set. The cart moves from session
    to user ownership once, during guest migration.
    """

    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    status: CartStatus = CartStatus.ACTIVE
    items: List[CartItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    currency: str = CART_CURRENCY
    expires_at: datetime = Field(default_factory=default_expiry)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_single_owner(self) -> "Cart":
        if bool(self.user_id) == bool(self.session_id):
            raise ValueError("exactly one of user_id and session_id must be set")
        return self

    @classmethod
    def new(cls, user_id: Optional[str], session_id: Optional[str]) -> "Cart":
        # user id wins when both are known
        if user_id:
            return cls(user_id=user_id)
        return cls(session_id=session_id)

    @property
    def owner(self) -> Tuple[OwnerKind, str]:
        if self.user_id:
            return OwnerKind.USER, self.user_id
        return OwnerKind.SESSION, self.session_id

    def owner_key(self) -> str:
        kind, owner_id = self.owner
        return kind.key(owner_id)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def transition_to(self, status: CartStatus) -> None:
        if status not in CART_STATUS_TRANSITIONS[self.status]:
            raise InvalidStatusTransitionError(
                f"cart {self.id} cannot go from {self.status.value} to {status.value}"
            )
        self.status = status
        self.touch()

    def ensure_active(self) -> None:
        if self.status != CartStatus.ACTIVE:
            raise CartConflictError(f"cart {self.id} is {self.status.value} and cannot be modified")

    # --- items ---

    def find_item(self, product_id: str, sku: Optional[str] = None) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id and (sku is None or item.sku == sku):
                return item
        return None

    def add_item(self, product_id: str, sku: str, name: str, price: Decimal, quantity: int) -> CartItem:
        """Append a line, or grow the existing (product_id, sku) line."""
        existing = self.find_item(product_id, sku)
        if existing:
            existing.set_quantity(existing.quantity + quantity)
            item = existing
        else:
            item = CartItem.create(product_id, sku, name, price, quantity)
            self.items.append(item)
        self.touch()
        self.calculate_subtotal()
        return item

    def update_item(self, product_id: str, quantity: int, sku: Optional[str] = None) -> bool:
        item = self.find_item(product_id, sku)
        if item is None:
            return False
        if quantity == 0:
            self.items = [i for i in self.items if i is not item]
        else:
            item.set_quantity(quantity)
        self.touch()
        self.calculate_subtotal()
        return True

    def remove_item(self, product_id: str, sku: Optional[str] = None) -> bool:
        item = self.find_item(product_id, sku)
        if item is None:
            return False
        self.items = [i for i in self.items if i is not item]
        self.touch()
        self.calculate_subtotal()
        return True

    def clear(self) -> None:
        self.items = []
        self.touch()
        self.calculate_subtotal()

    def calculate_subtotal(self) -> Decimal:
        self.subtotal = sum((i.price * i.quantity for i in self.items), Decimal("0.00"))
        return self.subtotal

    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)
