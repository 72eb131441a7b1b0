"""Shared fixtures: an in-memory storefront with a small seeded catalog."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import httpx
import pytest
from kungfu import Error, Ok, Result

from storefront.auth import Identity
from storefront.backend import ADMIN
from storefront.config import Settings
from storefront.container import Storefront
from storefront.models import Coupon, CouponType, Product, ShippingAddress

MEMORY_DB = "sqlite+aiosqlite:///:memory:"

CEMENT = Product(id="p-cement", name="Cement 50kg", price=Decimal("50000.00"), category="Building Materials")
TILES = Product(id="p-tiles", name="Floor Tiles", price=Decimal("25000.00"), category="Flooring")
DOOR = Product(id="p-door", name="Oak Door", price=Decimal("120000.00"), category="Windows & Doors", in_stock=False)

WELCOME10 = Coupon(
    id="c-welcome",
    code="WELCOME10",
    type=CouponType.PERCENTAGE,
    discount_value=Decimal("10"),
    min_purchase_amount=Decimal("50000.00"),
)

ADDRESS = ShippingAddress(
    first_name="Ada",
    last_name="Customer",
    address_line1="KN 5 Rd",
    city="Kigali",
    country="Rwanda",
    phone="0781234567",
)

CUSTOMER = Identity(user_id="user-1", email="ada@example.com", name="Ada Customer", phone="0781234567")
OTHER = Identity(user_id="user-2", email="bob@example.com", name="Bob Other")
ADMIN_USER = Identity(user_id="admin-1", email="admin@example.com", name="Store Admin")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


def ok[T](result: Result[T, Any]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(f"expected Ok, got Error({e!r})")


def err[E](result: Result[Any, E]) -> E:
    match result:
        case Error(e):
            return e
        case Ok(value):
            raise AssertionError(f"expected Error, got Ok({value!r})")


async def seed(store: Storefront) -> None:
    backend = store.backend
    for product in (CEMENT, TILES, DOOR):
        ok(await backend.products.add(product))
    ok(await backend.coupons.add(WELCOME10))
    ok(await backend.roles.grant(ADMIN_USER.user_id, ADMIN))


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected HTTP call: {request.method} {request.url}")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 15, 12, 0, 0))


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=MEMORY_DB, test_mode=True, log_level="WARNING")


@pytest.fixture
def http_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Override in a test module to fake provider responses."""
    return _no_network


@pytest.fixture
def run():
    """Run a coroutine function to completion on a fresh event loop."""
    def runner[T](scenario: Callable[[], Awaitable[T]]) -> T:
        return asyncio.run(scenario())
    return runner


@pytest.fixture
def in_store(settings, clock, http_handler):
    """
    Run ``scenario(store)`` against a freshly seeded in-memory storefront.

    Database and HTTP client live on the scenario's own event loop.
    """
    def runner[T](scenario: Callable[[Storefront], Awaitable[T]], **overrides: Any) -> T:
        async def main() -> T:
            http = httpx.AsyncClient(transport=httpx.MockTransport(http_handler))
            store = await Storefront.open(settings, http=http, clock=clock, **overrides)
            try:
                await seed(store)
                return await scenario(store)
            finally:
                await store.close()
        return asyncio.run(main())
    return runner
