# cartstore/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from cartstore.utils.settings import CART_MAX_EXTENSION_HOURS


class AddItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    quantity: int = Field(..., ge=1, description="Quantity (must be >= 1)")


class UpdateItemIn(BaseModel):
    # 0 removes the line
    quantity: int = Field(..., ge=0)


class MigrateCartIn(BaseModel):
    session_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class ExtendExpiryIn(BaseModel):
    hours: int = Field(..., ge=1, le=CART_MAX_EXTENSION_HOURS, description="1 hour up to 7 days")


class CartSummary(BaseModel):
    cart_id: str
    item_count: int
    subtotal: Decimal
    currency: str
    expires_at: datetime
    updated_at: datetime


class ProductInfo(BaseModel):
    """Product as returned by the catalog service."""

    id: str
    sku: str = ""
    name: str = ""
    price: Decimal
    stock: int = 0
    is_available: bool = True


class CartValidationItem(BaseModel):
    product_id: str
    sku: str
    name: str
    reason: str


class CartPriceChange(BaseModel):
    product_id: str
    sku: str
    name: str
    old_price: Decimal
    new_price: Decimal


class CartValidationResult(BaseModel):
    """
    Outcome of re-checking a cart against the catalog.

    A changed price is reported in price_changes but does not make the
    cart invalid; total_amount is computed with the current prices.
    """

    is_valid: bool = True
    invalid_items: List[CartValidationItem] = Field(default_factory=list)
    price_changes: List[CartPriceChange] = Field(default_factory=list)
    unavailable_items: List[CartValidationItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")


class MessageOut(BaseModel):
    message: str


class CleanupOut(BaseModel):
    message: str
    deleted: int
