"""Tests for CartService business rules."""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from cartstore.data.models.cart import CartStatus
from cartstore.data.models.cart_item import utcnow
from cartstore.domain.errors import (
    CartConflictError,
    CartItemNotFoundError,
    CartValidationError,
    InsufficientStockError,
    ProductNotFoundError,
)
from cartstore.domain.schemas import ProductInfo
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.cart_service import CartService

from conftest import InMemoryRedis, expire, make_cart


def _product(product_id: str, price: str, stock: int = 100, is_available: bool = True) -> ProductInfo:
    return ProductInfo(id=product_id, sku=f"SKU-{product_id}", name=product_id, price=Decimal(price),
                       stock=stock, is_available=is_available)


class TestGetCart:
    def test_creates_cart_once(self, service: CartService) -> None:
        first = service.get_cart("u1", None)
        second = service.get_cart("u1", None)

        assert first.user_id == "u1"
        assert first.items == []
        assert second.id == first.id

    def test_owner_is_required(self, service: CartService, fake_redis: InMemoryRedis) -> None:
        with pytest.raises(CartValidationError):
            service.get_cart(None, None)
        with pytest.raises(CartValidationError):
            service.get_cart("", "")
        assert fake_redis.data == {}

    def test_expired_cart_is_replaced_by_new_one(self, service: CartService, repo: CartRepo) -> None:
        old = expire(make_cart("u1", items=[("a", "A", "1.00", 1)]))
        repo.save_cart(old)

        cart = service.get_cart("u1", None)

        assert cart.id != old.id
        assert cart.items == []


class TestAddItem:
    def test_add_to_empty_cart(self, service: CartService) -> None:
        cart = service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("19.99"), 2)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.subtotal == Decimal("39.98")

    def test_second_add_increments_quantity(self, service: CartService) -> None:
        service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("19.99"), 2)
        cart = service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("19.99"), 1)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3
        assert cart.subtotal == Decimal("59.97")

    def test_changes_are_persisted(self, service: CartService, repo: CartRepo) -> None:
        service.add_item(None, "s1", "prod1", "SKU1", "Product 1", Decimal("5.00"), 4)
        stored = repo.get_cart(None, "s1")
        assert stored.subtotal == Decimal("20.00")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_is_rejected(
        self, service: CartService, fake_redis: InMemoryRedis, quantity: int
    ) -> None:
        with pytest.raises(CartValidationError):
            service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("19.99"), quantity)
        assert fake_redis.data == {}

    def test_rejected_add_leaves_cart_unchanged(self, service: CartService, repo: CartRepo) -> None:
        service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("19.99"), 1)
        with pytest.raises(CartValidationError):
            service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("19.99"), 0)

        cart = repo.get_cart("u1", None)
        assert cart.items[0].quantity == 1
        assert cart.subtotal == Decimal("19.99")

    def test_negative_price_is_rejected(self, service: CartService) -> None:
        with pytest.raises(CartValidationError):
            service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("-1"), 1)

    def test_inactive_cart_cannot_be_changed(self, service: CartService, repo: CartRepo) -> None:
        cart = make_cart("u1")
        cart.transition_to(CartStatus.ABANDONED)
        repo.save_cart(cart)

        with pytest.raises(CartConflictError):
            service.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("1.00"), 1)

    def test_insufficient_stock_is_a_conflict(
        self, service_with_catalog: CartService, catalog: MagicMock, repo: CartRepo
    ) -> None:
        catalog.has_stock.return_value = False

        with pytest.raises(InsufficientStockError):
            service_with_catalog.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("1.00"), 5)
        assert repo.get_cart("u1", None) is None
        catalog.has_stock.assert_called_once_with("prod1", 5)

    def test_catalog_outage_does_not_block_adding(
        self, service_with_catalog: CartService, catalog: MagicMock
    ) -> None:
        catalog.has_stock.side_effect = requests.ConnectionError("catalog down")

        cart = service_with_catalog.add_item("u1", None, "prod1", "SKU1", "Product 1", Decimal("1.00"), 1)
        assert cart.item_count() == 1


class TestUpdateAndRemove:
    @pytest.fixture()
    def filled(self, service: CartService) -> CartService:
        service.add_item("u1", None, "a", "A", "Product A", Decimal("2.50"), 2)
        service.add_item("u1", None, "b", "B", "Product B", Decimal("4.00"), 1)
        return service

    def test_update_replaces_quantity(self, filled: CartService) -> None:
        cart = filled.update_item("u1", None, "a", 5)
        assert cart.find_item("a").quantity == 5
        assert cart.find_item("a").total == Decimal("12.50")
        assert cart.subtotal == Decimal("16.50")

    def test_update_to_zero_removes_exactly_one_line(self, filled: CartService) -> None:
        before = len(filled.get_cart("u1", None).items)
        cart = filled.update_item("u1", None, "a", 0)

        assert len(cart.items) == before - 1
        assert cart.find_item("a") is None
        assert cart.subtotal == Decimal("4.00")

    def test_negative_update_is_rejected(self, filled: CartService) -> None:
        with pytest.raises(CartValidationError):
            filled.update_item("u1", None, "a", -1)

    def test_update_unknown_item(self, filled: CartService) -> None:
        with pytest.raises(CartItemNotFoundError):
            filled.update_item("u1", None, "zzz", 1)

    def test_remove_item(self, filled: CartService) -> None:
        cart = filled.remove_item("u1", None, "b")
        assert [i.product_id for i in cart.items] == ["a"]
        assert cart.subtotal == Decimal("5.00")

    def test_update_and_remove_by_sku(self, filled: CartService) -> None:
        filled.add_item("u1", None, "a", "A-XL", "Product A XL", Decimal("3.00"), 1)

        cart = filled.update_item("u1", None, "a", 3, sku="A-XL")
        assert cart.find_item("a", "A-XL").quantity == 3
        assert cart.find_item("a", "A").quantity == 2

        cart = filled.remove_item("u1", None, "a", sku="A-XL")
        assert cart.find_item("a", "A-XL") is None
        assert cart.find_item("a", "A") is not None

    def test_remove_unknown_item(self, filled: CartService) -> None:
        with pytest.raises(CartItemNotFoundError):
            filled.remove_item("u1", None, "zzz")

    def test_clear_keeps_an_empty_cart(self, filled: CartService, repo: CartRepo) -> None:
        cart_id = filled.get_cart("u1", None).id
        filled.clear_cart("u1", None)

        stored = repo.get_cart("u1", None)
        assert stored.id == cart_id
        assert stored.items == []
        assert stored.subtotal == Decimal("0")

    def test_summary(self, filled: CartService) -> None:
        summary = filled.get_summary("u1", None)
        assert summary.item_count == 3
        assert summary.subtotal == Decimal("9.00")
        assert summary.currency == "USD"


class TestExtendExpiry:
    def test_extend_sets_expiry_from_now(self, service: CartService, repo: CartRepo) -> None:
        cart = service.extend_expiry("u1", None, timedelta(hours=48))

        expected = utcnow() + timedelta(hours=48)
        assert abs((cart.expires_at - expected).total_seconds()) < 60
        assert repo.get_cart("u1", None).expires_at == cart.expires_at

    @pytest.mark.parametrize("hours", [0, -1, 200])
    def test_out_of_range_extension_is_rejected(self, service: CartService, hours: int) -> None:
        with pytest.raises(CartValidationError):
            service.extend_expiry("u1", None, timedelta(hours=hours))

    def test_maximum_extension_is_accepted(self, service: CartService) -> None:
        cart = service.extend_expiry("u1", None, timedelta(hours=168))
        assert cart.expires_at > utcnow() + timedelta(hours=167)


class TestValidateCart:
    def test_without_catalog_cart_is_valid(self, service: CartService) -> None:
        cart = service.add_item("u1", None, "a", "A", "Product A", Decimal("3.00"), 2)
        result = service.validate_cart(cart)

        assert result.is_valid
        assert result.total_amount == Decimal("6.00")

    def test_price_change_is_reported_not_fatal(
        self, service_with_catalog: CartService, catalog: MagicMock
    ) -> None:
        cart = service_with_catalog.add_item("u1", None, "a", "A", "Product A", Decimal("3.00"), 2)
        catalog.fetch_product.return_value = _product("a", "3.50")

        result = service_with_catalog.validate_cart(cart)

        assert result.is_valid
        assert len(result.price_changes) == 1
        assert result.price_changes[0].old_price == Decimal("3.00")
        assert result.price_changes[0].new_price == Decimal("3.50")
        assert result.total_amount == Decimal("7.00")

    def test_missing_and_unavailable_products(
        self, service_with_catalog: CartService, catalog: MagicMock
    ) -> None:
        service_with_catalog.add_item("u1", None, "gone", "G", "Gone", Decimal("1.00"), 1)
        service_with_catalog.add_item("u1", None, "off", "O", "Off", Decimal("1.00"), 1)
        service_with_catalog.add_item("u1", None, "low", "L", "Low", Decimal("1.00"), 5)
        cart = service_with_catalog.add_item("u1", None, "ok", "K", "Ok", Decimal("2.00"), 1)

        def fetch(product_id: str) -> ProductInfo:
            if product_id == "gone":
                raise ProductNotFoundError("gone")
            if product_id == "off":
                return _product("off", "1.00", is_available=False)
            if product_id == "low":
                return _product("low", "1.00", stock=2)
            return _product("ok", "2.00")

        catalog.fetch_product.side_effect = fetch
        result = service_with_catalog.validate_cart(cart)

        assert not result.is_valid
        assert [i.product_id for i in result.invalid_items] == ["gone"]
        assert {i.product_id: i.reason for i in result.unavailable_items} == {
            "off": "Product no longer available",
            "low": "Insufficient stock",
        }
        assert result.total_amount == Decimal("2.00")

    def test_catalog_outage_flags_line(
        self, service_with_catalog: CartService, catalog: MagicMock
    ) -> None:
        cart = service_with_catalog.add_item("u1", None, "a", "A", "Product A", Decimal("3.00"), 1)
        catalog.fetch_product.side_effect = requests.ConnectionError("catalog down")

        result = service_with_catalog.validate_cart(cart)

        assert not result.is_valid
        assert [(i.product_id, i.reason) for i in result.invalid_items] == [("a", "Product lookup failed")]
        assert result.total_amount == Decimal("0.00")


class TestCleanup:
    def test_cleanup_deletes_expired_carts(self, service: CartService, repo: CartRepo) -> None:
        repo.save_cart(expire(make_cart("u1")))
        repo.save_cart(expire(make_cart(session_id="s1")))
        repo.save_cart(make_cart("u2"))

        assert service.cleanup_expired_carts() == 2
        assert repo.get_cart("u2", None) is not None
