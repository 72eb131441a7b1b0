"""
Orders — placement, payment finalization, admin status changes, history.

    order = await factory.create_order(identity, CreateOrder.from_cart(lines, address, method, key))
    order = await finalizer.finalize(identity, order.id, method, transaction_id=tx_id)
    order = await status.update_status(admin, order.id, OrderStatus.SHIPPED, "TRK123")
"""

from storefront.orders._factory import OrderFactory, CreateOrder, OrderLine, check_command
from storefront.orders._finalizer import OrderFinalizer
from storefront.orders._status import (
    ORDER_TRANSITIONS,
    OrderStatusMachine,
    can_transition,
    is_terminal,
    status_message,
)
from storefront.orders._queries import OrderQueries

__all__ = (
    "OrderFactory",
    "CreateOrder",
    "OrderLine",
    "check_command",
    "OrderFinalizer",
    "ORDER_TRANSITIONS",
    "OrderStatusMachine",
    "can_transition",
    "is_terminal",
    "status_message",
    "OrderQueries",
)
