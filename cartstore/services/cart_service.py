# cartstore/services/cart_service.py
from datetime import timedelta
from decimal import Decimal
from typing import Optional

import requests

from cartstore.data.models.cart import Cart
from cartstore.data.models.cart_item import utcnow
from cartstore.domain.errors import (
    CartItemNotFoundError,
    CartValidationError,
    InsufficientStockError,
    ProductNotFoundError,
)
from cartstore.domain.schemas import (
    CartPriceChange,
    CartSummary,
    CartValidationItem,
    CartValidationResult,
)
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.product_client import ProductClient
from cartstore.utils.settings import CART_MAX_EXTENSION_HOURS
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)

# catalog failures that must not break adding items
_CATALOG_ERRORS = (requests.RequestException, ProductNotFoundError, ValueError)


class CartService:
    """
    Cart use cases; the only code that mutates carts.

    Every mutation is read-modify-write on the whole cart record with no
    locking: two concurrent writers on the same owner race and the last
    save wins.
    """

    def __init__(self, repo: CartRepo, product_client: Optional[ProductClient] = None):
        self.repo = repo
        self.product_client = product_client

    # =====================================================
    # QUERY
    # =====================================================
    def get_cart(self, user_id: Optional[str], session_id: Optional[str]) -> Cart:
        self._require_owner(user_id, session_id)

        cart = self.repo.get_cart(user_id, session_id)
        if cart is None:
            cart = Cart.new(user_id, session_id)
            self.repo.save_cart(cart)
            logger.info(f"Created new cart {cart.id} (user={user_id}, session={session_id})")

        return cart

    def get_summary(self, user_id: Optional[str], session_id: Optional[str]) -> CartSummary:
        cart = self.get_cart(user_id, session_id)
        return CartSummary(
            cart_id=cart.id,
            item_count=cart.item_count(),
            subtotal=cart.subtotal,
            currency=cart.currency,
            expires_at=cart.expires_at,
            updated_at=cart.updated_at,
        )

    # =====================================================
    # COMMANDS
    # =====================================================
    def add_item(
        self,
        user_id: Optional[str],
        session_id: Optional[str],
        product_id: str,
        sku: str,
        name: str,
        price: Decimal,
        quantity: int,
    ) -> Cart:
        # reject bad input before touching redis
        self._require_owner(user_id, session_id)
        if quantity <= 0:
            raise CartValidationError("quantity must be greater than 0")
        if price < 0:
            raise CartValidationError("price must not be negative")

        self._check_stock(product_id, quantity)

        cart = self.get_cart(user_id, session_id)
        cart.ensure_active()

        existing = cart.find_item(product_id, sku)
        if existing:
            logger.info(
                f"Product {product_id} already in cart {cart.id}, increasing quantity "
                f"from {existing.quantity} to {existing.quantity + quantity}"
            )
        cart.add_item(product_id, sku, name, price, quantity)
        self.repo.save_cart(cart)

        logger.info(f"Added {quantity} x {product_id} to cart {cart.id}")
        return cart

    def update_item(
        self,
        user_id: Optional[str],
        session_id: Optional[str],
        product_id: str,
        quantity: int,
        sku: Optional[str] = None,
    ) -> Cart:
        self._require_owner(user_id, session_id)
        if quantity < 0:
            raise CartValidationError("quantity must not be negative")

        if quantity > 0:
            self._check_stock(product_id, quantity)

        cart = self.get_cart(user_id, session_id)
        cart.ensure_active()

        if not cart.update_item(product_id, quantity, sku):
            raise CartItemNotFoundError(f"item {product_id} not found in cart")

        self.repo.save_cart(cart)

        if quantity == 0:
            logger.info(f"Removed {product_id} from cart {cart.id} (quantity set to 0)")
        else:
            logger.info(f"Set quantity of {product_id} in cart {cart.id} to {quantity}")
        return cart

    def remove_item(
        self,
        user_id: Optional[str],
        session_id: Optional[str],
        product_id: str,
        sku: Optional[str] = None,
    ) -> Cart:
        """Without a sku the first line for the product is removed."""
        cart = self.get_cart(user_id, session_id)
        cart.ensure_active()

        if not cart.remove_item(product_id, sku):
            raise CartItemNotFoundError(f"item {product_id} not found in cart")

        self.repo.save_cart(cart)
        logger.info(f"Removed {product_id} from cart {cart.id}")
        return cart

    def clear_cart(self, user_id: Optional[str], session_id: Optional[str]) -> Cart:
        cart = self.get_cart(user_id, session_id)
        cart.ensure_active()

        removed = len(cart.items)
        cart.clear()
        self.repo.save_cart(cart)

        logger.info(f"Cleared cart {cart.id}: {removed} lines removed")
        return cart

    def migrate_guest_cart(self, session_id: str, user_id: str) -> Cart:
        if not session_id or not user_id:
            raise CartValidationError("both session_id and user_id are required")

        self.repo.migrate_guest_cart_to_user(session_id, user_id)

        cart = self.get_cart(user_id, None)
        logger.info(f"Migrated guest cart of session {session_id} to user {user_id}, cart {cart.id}")
        return cart

    def extend_expiry(
        self,
        user_id: Optional[str],
        session_id: Optional[str],
        duration: timedelta,
    ) -> Cart:
        self._require_owner(user_id, session_id)
        if duration <= timedelta(0):
            raise CartValidationError("expiry extension must be positive")
        if duration > timedelta(hours=CART_MAX_EXTENSION_HOURS):
            raise CartValidationError(
                f"expiry extension must not exceed {CART_MAX_EXTENSION_HOURS} hours"
            )

        cart = self.get_cart(user_id, session_id)
        cart = self.repo.update_cart_expiry(cart.id, utcnow() + duration)

        logger.info(f"Extended cart {cart.id} expiry to {cart.expires_at.isoformat()}")
        return cart

    def validate_cart(self, cart: Cart) -> CartValidationResult:
        """
        Re-check every line against the catalog.

        Problems are collected into the result instead of raised: a line
        whose product is gone or out of stock makes the cart invalid, a
        changed price is only reported.
        """
        result = CartValidationResult()

        if self.product_client is None:
            result.total_amount = cart.subtotal
            return result

        total = Decimal("0.00")
        for item in cart.items:
            try:
                product = self.product_client.fetch_product(item.product_id)
            except ProductNotFoundError:
                result.invalid_items.append(self._flag(item, "Product not found"))
                continue
            except (requests.RequestException, ValueError) as e:
                logger.error(f"Failed to fetch product {item.product_id} for validation: {e}")
                result.invalid_items.append(self._flag(item, "Product lookup failed"))
                continue

            if not product.is_available:
                result.unavailable_items.append(self._flag(item, "Product no longer available"))
                continue

            if product.stock < item.quantity:
                result.unavailable_items.append(self._flag(item, "Insufficient stock"))
                continue

            if item.price != product.price:
                result.price_changes.append(
                    CartPriceChange(
                        product_id=item.product_id,
                        sku=item.sku,
                        name=item.name,
                        old_price=item.price,
                        new_price=product.price,
                    )
                )
                total += product.price * item.quantity
            else:
                total += item.price * item.quantity

        result.is_valid = not (result.invalid_items or result.unavailable_items)
        result.total_amount = total
        return result

    def cleanup_expired_carts(self) -> int:
        deleted = self.repo.delete_expired_carts()
        logger.info(f"Cleaned up {deleted} expired carts")
        return deleted

    # =====================================================
    # HELPERS
    # =====================================================
    @staticmethod
    def _require_owner(user_id: Optional[str], session_id: Optional[str]) -> None:
        if not user_id and not session_id:
            raise CartValidationError("either user ID or session ID is required")

    @staticmethod
    def _flag(item, reason: str) -> CartValidationItem:
        return CartValidationItem(product_id=item.product_id, sku=item.sku, name=item.name, reason=reason)

    def _check_stock(self, product_id: str, quantity: int) -> None:
        if self.product_client is None:
            return

        try:
            available = self.product_client.has_stock(product_id, quantity)
        except _CATALOG_ERRORS as e:
            logger.error(f"Failed to validate stock for product {product_id} (quantity {quantity}): {e}")
            return

        if not available:
            raise InsufficientStockError(f"insufficient stock for product {product_id}")
