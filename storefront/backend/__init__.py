"""
Backend — per-table repositories over one session factory.

Every method is a single round-trip returning LazyCoroResult[T, Failure];
await it to get the Result.

    backend = Backend(session_factory)
    match await backend.orders.get(order_id):
        case Ok(order): ...
"""

from __future__ import annotations

from storefront._types import Clock, utcnow
from storefront.db import SessionFactory
from storefront.backend._products import ProductRepo
from storefront.backend._carts import CartRepo
from storefront.backend._orders import REFERENCE_TAKEN, OrderRepo, OrderStats
from storefront.backend._coupons import CouponRepo, normalize_code
from storefront.backend._notifications import NotificationRepo
from storefront.backend._returns import ReturnRepo
from storefront.backend._roles import RoleRepo, ADMIN


class Backend:
    def __init__(self, session_factory: SessionFactory, clock: Clock = utcnow) -> None:
        self.session_factory = session_factory
        self.products = ProductRepo(session_factory, clock)
        self.carts = CartRepo(session_factory, clock)
        self.orders = OrderRepo(session_factory, clock)
        self.coupons = CouponRepo(session_factory, clock)
        self.notifications = NotificationRepo(session_factory)
        self.returns = ReturnRepo(session_factory)
        self.roles = RoleRepo(session_factory)


__all__ = (
    "Backend",
    "REFERENCE_TAKEN",
    "ProductRepo",
    "CartRepo",
    "OrderRepo",
    "OrderStats",
    "CouponRepo",
    "NotificationRepo",
    "ReturnRepo",
    "RoleRepo",
    "ADMIN",
    "normalize_code",
)
