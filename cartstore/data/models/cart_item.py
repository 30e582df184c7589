# cartstore/data/models/cart_item.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class CartItem(BaseModel):
    """One product line in a cart; total is always price * quantity."""

    id: str = Field(default_factory=new_id)
    product_id: str
    sku: str
    name: str
    price: Decimal
    quantity: int = Field(..., gt=0)
    total: Decimal = Decimal("0.00")
    added_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def create(cls, product_id: str, sku: str, name: str, price: Decimal, quantity: int) -> "CartItem":
        return cls(
            product_id=product_id,
            sku=sku,
            name=name,
            price=price,
            quantity=quantity,
            total=price * quantity,
        )

    def set_quantity(self, quantity: int) -> None:
        self.quantity = quantity
        self.total = self.price * quantity
        self.updated_at = utcnow()
