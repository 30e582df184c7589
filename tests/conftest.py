"""Shared pytest fixtures: in-memory Redis double, repository, service, API client."""
from __future__ import annotations

import fnmatch
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional
from unittest.mock import MagicMock

import pytest
import redis
from fastapi.testclient import TestClient

from cartstore.data.models.cart import Cart
from cartstore.data.models.cart_item import utcnow
from cartstore.main import create_app
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.cart_service import CartService
from cartstore.services.product_client import ProductClient


class InMemoryRedis:
    """
    Test double covering the redis.Redis calls CartRepo makes.

    TTLs are recorded, not enforced. Add an operation name to ``fail_on``
    to make it raise redis.ConnectionError.
    """

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail_on: set[str] = set()

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise redis.ConnectionError(f"simulated {op} failure")

    def get(self, key: str) -> Optional[str]:
        self._maybe_fail("get")
        return self.data.get(key)

    def set(self, key: str, value: str, ex: Any = None) -> bool:
        self._maybe_fail("set")
        self.data[key] = value
        self.ttls[key] = int(ex.total_seconds()) if isinstance(ex, timedelta) else ex
        return True

    def delete(self, *keys: str) -> int:
        self._maybe_fail("delete")
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None) -> Iterator[str]:
        self._maybe_fail("scan")
        pattern = match or "*"
        return iter([k for k in list(self.data) if fnmatch.fnmatchcase(k, pattern)])

    def pipeline(self, transaction: bool = True) -> "_Pipeline":
        return _Pipeline(self)

    def ping(self) -> bool:
        self._maybe_fail("ping")
        return True

    def close(self) -> None:
        pass


class _Pipeline:
    """Queued commands applied all-or-nothing, like MULTI/EXEC."""

    def __init__(self, client: InMemoryRedis) -> None:
        self.client = client
        self.ops: List[tuple] = []

    def set(self, *args: Any, **kwargs: Any) -> "_Pipeline":
        self.ops.append(("set", args, kwargs))
        return self

    def delete(self, *keys: str) -> "_Pipeline":
        self.ops.append(("delete", keys, {}))
        return self

    def execute(self) -> List[Any]:
        for op, _, _ in self.ops:
            self.client._maybe_fail(op)
        return [getattr(self.client, op)(*args, **kwargs) for op, args, kwargs in self.ops]


@pytest.fixture()
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture()
def repo(fake_redis: InMemoryRedis) -> CartRepo:
    return CartRepo(fake_redis)


@pytest.fixture()
def service(repo: CartRepo) -> CartService:
    return CartService(repo)


@pytest.fixture()
def catalog() -> MagicMock:
    client = MagicMock(spec=ProductClient)
    client.has_stock.return_value = True
    return client


@pytest.fixture()
def service_with_catalog(repo: CartRepo, catalog: MagicMock) -> CartService:
    return CartService(repo, catalog)


@pytest.fixture()
def api_client(fake_redis: InMemoryRedis) -> Iterator[TestClient]:
    app = create_app(redis_client=fake_redis)
    with TestClient(app) as client:
        yield client


def make_cart(user_id: Optional[str] = None, session_id: Optional[str] = None, items=()) -> Cart:
    """Cart with (product_id, sku, price, quantity) lines already added."""
    cart = Cart.new(user_id, session_id)
    for product_id, sku, price, quantity in items:
        cart.add_item(product_id, sku, f"Product {product_id}", Decimal(price), quantity)
    return cart


def expire(cart: Cart) -> Cart:
    cart.expires_at = utcnow() - timedelta(minutes=5)
    return cart
