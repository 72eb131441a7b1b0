"""
Read side: order history for customers, listings and dashboard figures for admins.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error

from storefront.auth import Identity, require_admin, require_identity
from storefront.backend import Backend, OrderStats
from storefront.errors import Failure, Failures
from storefront.models import Order, OrderStatus, Page


class OrderQueries:
    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    async def list_orders(self, identity: Identity | None, page: int = 1, limit: int = 10) -> Result[Page[Order], Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                return await self._backend.orders.list_for_user(user.user_id, page, limit)

    async def get_order(self, identity: Identity | None, order_id: str) -> Result[Order, Failure]:
        """Owner only; someone else's order reads as missing."""
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                pass

        match await self._backend.orders.get(order_id):
            case Ok(order) if order is not None and order.user_id == user.user_id:
                return Ok(order)
            case Ok(_):
                return Error(Failures.not_found("Order", order_id))
            case Error(e):
                return Error(e)

    async def list_all_orders(
        self,
        identity: Identity | None,
        page: int = 1,
        limit: int = 20,
        status: OrderStatus | None = None,
    ) -> Result[Page[Order], Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)
        return await self._backend.orders.list_all(page, limit, status)

    async def order_stats(self, identity: Identity | None) -> Result[OrderStats, Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)
        return await self._backend.orders.stats()


__all__ = ("OrderQueries",)
