# cartstore/repos/cart_repo.py
from datetime import datetime, timedelta
from typing import List, Optional

import redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from cartstore.data.models.cart import (
    CART_ID_KEY_PREFIX,
    Cart,
    CartStatus,
    OwnerKind,
    cart_id_key,
)
from cartstore.data.models.cart_item import utcnow
from cartstore.domain.errors import CartDecodeError, CartNotFoundError, CartStoreError
from cartstore.utils.settings import CART_TTL_SECONDS
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)


class CartRepo:
    """
    Carts in Redis, each stored under two keys:
    cart:user:<id> or cart:session:<id> (owner) and cart:id:<cart id>.

    Reads evict expired carts from both keys before answering "not found".
    Redis errors are wrapped in CartStoreError and never retried here.
    """

    def __init__(self, client: redis.Redis, default_ttl: int = CART_TTL_SECONDS):
        self.redis = client
        self.default_ttl = default_ttl

    # =====================================================
    # READ
    # =====================================================
    def get_cart(self, user_id: Optional[str], session_id: Optional[str]) -> Cart | None:
        if user_id:
            key = OwnerKind.USER.key(user_id)
        else:
            key = OwnerKind.SESSION.key(session_id)
        return self._read(key)

    def get_cart_by_id(self, cart_id: str) -> Cart | None:
        return self._read(cart_id_key(cart_id))

    def _read(self, key: str) -> Cart | None:
        data = self._get_raw(key)
        if data is None:
            return None

        try:
            cart = Cart.model_validate_json(data)
        except ValidationError as e:
            # cannot be resurrected safely
            logger.warning(f"Malformed cart payload under {key}, treating as absent: {e}")
            return None

        if cart.is_expired():
            logger.info(f"Cart {cart.id} expired at {cart.expires_at.isoformat()}, evicting")
            self._delete_keys(cart.owner_key(), cart_id_key(cart.id))
            return None

        return cart

    def _get_raw(self, key: str) -> str | None:
        try:
            return self.redis.get(key)
        except RedisError as e:
            raise CartStoreError(f"failed to get {key} from Redis: {e}") from e

    # =====================================================
    # WRITE
    # =====================================================
    def save_cart(self, cart: Cart) -> None:
        try:
            pipe = self.redis.pipeline()
            self._queue_save(pipe, cart)
            pipe.execute()
        except RedisError as e:
            raise CartStoreError(f"failed to save cart {cart.id} to Redis: {e}") from e

    def _queue_save(self, pipe, cart: Cart) -> None:
        data = cart.model_dump_json()
        ttl = self._ttl_for(cart.expires_at)
        pipe.set(cart.owner_key(), data, ex=ttl)
        pipe.set(cart_id_key(cart.id), data, ex=ttl)

    def _ttl_for(self, expires_at: datetime) -> timedelta:
        remaining = expires_at - utcnow()
        # redis rejects a non-positive ttl
        if remaining.total_seconds() < 1:
            return timedelta(seconds=self.default_ttl)
        return remaining

    def delete_cart(self, cart_id: str) -> None:
        """Remove both keys of a cart. Deleting an unknown cart is a no-op."""
        id_key = cart_id_key(cart_id)
        data = self._get_raw(id_key)
        if data is None:
            return

        try:
            cart = Cart.model_validate_json(data)
        except ValidationError:
            logger.warning(f"Malformed cart payload under {id_key}, deleting id key only")
            self._delete_keys(id_key)
            return

        self._delete_keys(cart.owner_key(), id_key)
        logger.info(f"Deleted cart {cart_id}")

    def _delete_keys(self, *keys: str) -> None:
        try:
            self.redis.delete(*keys)
        except RedisError as e:
            raise CartStoreError(f"failed to delete {', '.join(keys)} from Redis: {e}") from e

    def update_cart_expiry(self, cart_id: str, expires_at: datetime) -> Cart:
        cart = self.get_cart_by_id(cart_id)
        if cart is None:
            raise CartNotFoundError(f"cart {cart_id} not found")

        cart.expires_at = expires_at
        cart.touch()
        self.save_cart(cart)
        return cart

    # =====================================================
    # MAINTENANCE (cleanup task)
    # =====================================================
    def get_expired_carts(self) -> List[Cart]:
        """
        Full SCAN over cart:id:* keys, O(n) in the number of stored carts.
        Each cart has exactly one id key, so every cart is seen once.
        """
        now = utcnow()
        expired = []
        try:
            for key in self.redis.scan_iter(match=f"{CART_ID_KEY_PREFIX}*", count=500):
                data = self.redis.get(key)
                if data is None:
                    # expired in redis between SCAN and GET
                    continue
                try:
                    cart = Cart.model_validate_json(data)
                except ValidationError as e:
                    raise CartDecodeError(f"malformed cart payload under {key}: {e}") from e
                if cart.is_expired(now):
                    expired.append(cart)
        except RedisError as e:
            raise CartStoreError(f"failed to scan carts in Redis: {e}") from e

        return expired

    def delete_expired_carts(self) -> int:
        expired = self.get_expired_carts()
        logger.info(f"Found {len(expired)} expired carts")

        deleted = 0
        for cart in expired:
            try:
                self._delete_keys(cart.owner_key(), cart_id_key(cart.id))
                deleted += 1
            except CartStoreError as e:
                logger.error(f"Failed to delete expired cart {cart.id}: {e}")

        return deleted

    # =====================================================
    # MIGRATION
    # =====================================================
    def migrate_guest_cart_to_user(self, session_id: str, user_id: str) -> Cart | None:
        """
        Move a guest cart onto the user at login.

        No guest cart: nothing happens and None is returned. No user cart:
        the guest cart is re-keyed to the user. Otherwise guest lines are
        merged into the user cart by (product_id, sku); the user line keeps
        its own unit price.

        Re-keying writes the user record and drops the session key in one
        MULTI/EXEC, so the old session payload never outlives the move. On
        merge the user cart and the converted guest cart are written
        together; the guest keys are then removed best-effort. A guest cart
        that is no longer active has already been migrated and is skipped.
        """
        guest = self.get_cart(None, session_id)
        if guest is None:
            logger.info(f"No guest cart for session {session_id}, nothing to migrate")
            return None

        if guest.status != CartStatus.ACTIVE:
            logger.info(f"Guest cart {guest.id} is {guest.status.value}, nothing to migrate")
            return None

        user_cart = self.get_cart(user_id, None)

        if user_cart is None:
            return self._rekey_guest_cart(guest, user_id)

        for guest_item in guest.items:
            match = user_cart.find_item(guest_item.product_id, guest_item.sku)
            if match:
                match.set_quantity(match.quantity + guest_item.quantity)
            else:
                user_cart.items.append(guest_item)

        user_cart.touch()
        user_cart.calculate_subtotal()
        guest.transition_to(CartStatus.CONVERTED)

        try:
            pipe = self.redis.pipeline(transaction=True)
            self._queue_save(pipe, user_cart)
            self._queue_save(pipe, guest)
            pipe.execute()
        except RedisError as e:
            raise CartStoreError(
                f"failed to merge guest cart {guest.id} into user cart {user_cart.id}: {e}"
            ) from e

        logger.info(
            f"Merged guest cart {guest.id} ({len(guest.items)} lines) "
            f"into user cart {user_cart.id}"
        )

        # guest cart id key would still resolve to the old guest cart
        try:
            self._delete_keys(OwnerKind.SESSION.key(session_id), cart_id_key(guest.id))
        except CartStoreError as e:
            logger.error(
                f"Failed to delete guest cart {guest.id} after migration "
                f"(session {session_id}, user {user_id}): {e}"
            )

        return user_cart

    def _rekey_guest_cart(self, guest: Cart, user_id: str) -> Cart:
        session_key = guest.owner_key()
        guest.user_id = user_id
        guest.session_id = None
        guest.touch()

        try:
            pipe = self.redis.pipeline(transaction=True)
            self._queue_save(pipe, guest)
            pipe.delete(session_key)
            pipe.execute()
        except RedisError as e:
            raise CartStoreError(f"failed to re-key guest cart {guest.id} to user {user_id}: {e}") from e

        logger.info(f"Re-keyed guest cart {guest.id} from {session_key} to user {user_id}")
        return guest
