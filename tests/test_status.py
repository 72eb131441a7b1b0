"""Admin order lifecycle, order queries and the notification feed."""

from dataclasses import replace
from decimal import Decimal

import pytest

from conftest import ADDRESS, ADMIN_USER, CUSTOMER, OTHER, err, ok
from storefront.errors import FailureKind
from storefront.models import NotificationType, Order, OrderStatus, PaymentMethod
from storefront.orders import CreateOrder, OrderLine, can_transition, is_terminal, status_message


def new_order(key="k-1", qty=1):
    return CreateOrder(
        items=(OrderLine("p-cement", qty),),
        shipping_address=ADDRESS,
        payment_method=PaymentMethod.CARD,
        idempotency_key=key,
    )


async def walk(store, order_id, *statuses, tracking=None):
    order = None
    for status in statuses:
        order = ok(await store.status.update_status(ADMIN_USER, order_id, status, tracking))
    return order


class TestTransitions:
    @pytest.mark.parametrize(
        ("src", "dst"),
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        ],
    )
    def test_allowed(self, src, dst):
        assert can_transition(src, dst)

    @pytest.mark.parametrize(
        ("src", "dst"),
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.PENDING),
        ],
    )
    def test_rejected(self, src, dst):
        assert not can_transition(src, dst)

    def test_terminal_states(self):
        assert is_terminal(OrderStatus.DELIVERED)
        assert is_terminal(OrderStatus.CANCELLED)
        assert not is_terminal(OrderStatus.SHIPPED)


class TestStatusMessage:
    def _order(self, clock, **changes):
        order = Order(
            id="0123456789abcdef",
            user_id="user-1",
            shipping_address=ADDRESS,
            subtotal=Decimal("1.00"),
            discount_amount=Decimal("0.00"),
            total=Decimal("1.00"),
            status=OrderStatus.PROCESSING,
            created_at=clock.now,
            updated_at=clock.now,
        )
        return replace(order, **changes)

    def test_plain_update(self, clock):
        title, message = status_message(self._order(clock))
        assert title == "Order Processing"
        assert message == "Your order #01234567 has been updated to processing."

    def test_shipped_includes_tracking(self, clock):
        _, message = status_message(self._order(clock, status=OrderStatus.SHIPPED, tracking_number="TRK123"))
        assert message == "Your order #01234567 has been updated to shipped. Tracking number: TRK123."


class TestUpdateStatus:
    def test_shipping_notifies_once_with_tracking(self, in_store, clock):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order()))
            await walk(store, order.id, OrderStatus.PROCESSING)
            before = ok(await store.notifications.list(CUSTOMER)).page.count
            clock.advance(hours=1)
            shipped = await walk(store, order.id, OrderStatus.SHIPPED, tracking="TRK123")
            feed = ok(await store.notifications.list(CUSTOMER))
            return shipped, before, feed

        shipped, before, feed = in_store(scenario)
        assert shipped.status is OrderStatus.SHIPPED
        assert shipped.tracking_number == "TRK123"
        assert feed.page.count == before + 1

        latest = feed.page.items[0]
        assert latest.type is NotificationType.ORDER_STATUS
        assert latest.title == "Order Shipped"
        assert latest.message.endswith("Tracking number: TRK123.")
        assert latest.data == {"order_id": shipped.id, "status": "shipped"}

    def test_tracking_number_only_stored_when_shipping(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order()))
            return await walk(store, order.id, OrderStatus.PROCESSING, tracking="TRK999")

        assert in_store(scenario).tracking_number is None

    def test_skipping_ahead_is_rejected(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order()))
            failure = err(await store.status.update_status(ADMIN_USER, order.id, OrderStatus.DELIVERED))
            reloaded = ok(await store.queries.get_order(CUSTOMER, order.id))
            return failure, reloaded

        failure, reloaded = in_store(scenario)
        assert failure.kind is FailureKind.INVALID_TRANSITION
        assert failure.details == {"from": "pending", "to": "delivered"}
        assert reloaded.status is OrderStatus.PENDING

    def test_delivered_is_final(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order()))
            await walk(store, order.id, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED)
            return err(await store.status.update_status(ADMIN_USER, order.id, OrderStatus.CANCELLED))

        assert in_store(scenario).kind is FailureKind.INVALID_TRANSITION

    def test_requires_admin(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order()))
            forbidden = err(await store.status.update_status(CUSTOMER, order.id, OrderStatus.PROCESSING))
            anonymous = err(await store.status.update_status(None, order.id, OrderStatus.PROCESSING))
            return forbidden, anonymous

        forbidden, anonymous = in_store(scenario)
        assert forbidden.kind is FailureKind.FORBIDDEN
        assert anonymous.kind is FailureKind.UNAUTHENTICATED

    def test_unknown_order(self, in_store):
        async def scenario(store):
            return err(await store.status.update_status(ADMIN_USER, "missing", OrderStatus.PROCESSING))

        assert in_store(scenario).kind is FailureKind.NOT_FOUND


class TestOrderQueries:
    def test_customers_only_see_their_own_orders(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order()))
            ok(await store.orders.create_order(OTHER, new_order()))
            mine = ok(await store.queries.list_orders(CUSTOMER))
            peek = err(await store.queries.get_order(OTHER, order.id))
            return mine, peek

        mine, peek = in_store(scenario)
        assert mine.count == 1
        assert mine.items[0].user_id == CUSTOMER.user_id
        assert peek.kind is FailureKind.NOT_FOUND

    def test_admin_listing_filters_by_status(self, in_store):
        async def scenario(store):
            first = ok(await store.orders.create_order(CUSTOMER, new_order("a")))
            ok(await store.orders.create_order(CUSTOMER, new_order("b")))
            await walk(store, first.id, OrderStatus.PROCESSING)
            every = ok(await store.queries.list_all_orders(ADMIN_USER))
            processing = ok(await store.queries.list_all_orders(ADMIN_USER, status=OrderStatus.PROCESSING))
            denied = err(await store.queries.list_all_orders(CUSTOMER))
            return every, processing, denied

        every, processing, denied = in_store(scenario)
        assert every.count == 2
        assert [o.status for o in processing.items] == [OrderStatus.PROCESSING]
        assert denied.kind is FailureKind.FORBIDDEN

    def test_stats_exclude_cancelled_revenue(self, in_store):
        async def scenario(store):
            kept = ok(await store.orders.create_order(CUSTOMER, new_order("a", qty=2)))
            dropped = ok(await store.orders.create_order(CUSTOMER, new_order("b")))
            await walk(store, dropped.id, OrderStatus.CANCELLED)
            return kept, ok(await store.queries.order_stats(ADMIN_USER))

        kept, stats = in_store(scenario)
        assert stats.total_orders == 2
        assert stats.total_revenue == kept.total
        assert stats.by_status == {"pending": 1, "cancelled": 1}
        assert stats.sales_by_month == {"2025-06": kept.total}
        assert len(stats.recent_orders) == 2


class TestNotificationFeed:
    def test_read_flags_and_ownership(self, in_store):
        async def scenario(store):
            ok(await store.orders.create_order(CUSTOMER, new_order("a")))
            ok(await store.orders.create_order(CUSTOMER, new_order("b")))
            feed = ok(await store.notifications.list(CUSTOMER))
            first, second = feed.page.items

            ok(await store.notifications.mark_read(CUSTOMER, first.id))
            unread_only = ok(await store.notifications.list(CUSTOMER, include_read=False))
            stranger = err(await store.notifications.delete(OTHER, second.id))
            marked = ok(await store.notifications.mark_all_read(CUSTOMER))
            ok(await store.notifications.delete(CUSTOMER, second.id))
            after = ok(await store.notifications.list(CUSTOMER))
            return feed, unread_only, stranger, marked, after

        feed, unread_only, stranger, marked, after = in_store(scenario)
        assert feed.unread_count == 2
        assert unread_only.page.count == 1
        assert unread_only.unread_count == 1
        assert stranger.kind is FailureKind.NOT_FOUND
        assert marked == 1
        assert after.page.count == 1
        assert after.unread_count == 0
