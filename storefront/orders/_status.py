"""
Order status machine (admin-driven).

    pending ──► processing ──► shipped ──► delivered
       │             │            │
       └─────────────┴────────────┴──► cancelled

delivered and cancelled are terminal.
"""

from __future__ import annotations

import logging
from types import MappingProxyType

from kungfu import Result, Ok, Error

from storefront.auth import Identity, require_admin
from storefront.backend import Backend
from storefront.errors import Failure, Failures
from storefront.models import NotificationType, Order, OrderStatus
from storefront.notifications import NotificationService

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS: MappingProxyType[OrderStatus, frozenset[OrderStatus]] = MappingProxyType({
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
})


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    return dst in ORDER_TRANSITIONS[src]


def is_terminal(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS[status]


def status_message(order: Order) -> tuple[str, str]:
    """Notification (title, message) for the order's current status."""
    status = order.status.value
    title = f"Order {status.capitalize()}"
    message = f"Your order #{order.short_ref} has been updated to {status}."
    if order.status is OrderStatus.SHIPPED and order.tracking_number:
        message = f"{message} Tracking number: {order.tracking_number}."
    return title, message


class OrderStatusMachine:
    def __init__(self, backend: Backend, notifications: NotificationService) -> None:
        self._backend = backend
        self._notifications = notifications

    async def update_status(
        self,
        identity: Identity | None,
        order_id: str,
        new_status: OrderStatus,
        tracking_number: str | None = None,
    ) -> Result[Order, Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)

        match await self._backend.orders.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Failures.not_found("Order", order_id))
            case Ok(order):
                pass

        if not can_transition(order.status, new_status):
            return Error(Failures.invalid_transition("order", order.status.value, new_status.value))

        fields = {}
        if new_status is OrderStatus.SHIPPED and tracking_number:
            fields["tracking_number"] = tracking_number.strip()

        match await self._backend.orders.transition(order_id, expected=order.status, status=new_status, **fields):
            case Error(e):
                return Error(e)
            case Ok(False):
                return Error(Failures.conflict("Order was updated concurrently, reload and try again"))

        match await self._backend.orders.get(order_id):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Failures.not_found("Order", order_id))
            case Ok(updated):
                pass

        logger.info("Order %s moved %s -> %s", order_id, order.status.value, new_status.value)
        title, message = status_message(updated)
        await self._notifications.emit(
            updated.user_id,
            NotificationType.ORDER_STATUS,
            title,
            message,
            {"order_id": updated.id, "status": new_status.value},
        )
        return Ok(updated)


__all__ = (
    "ORDER_TRANSITIONS",
    "can_transition",
    "is_terminal",
    "status_message",
    "OrderStatusMachine",
)
