"""Return window and the return-request workflow."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import ADDRESS, ADMIN_USER, CUSTOMER, OTHER, err, ok
from storefront.errors import FailureKind
from storefront.models import Order, OrderStatus, PaymentMethod, ReturnReason, ReturnStatus
from storefront.orders import CreateOrder, OrderLine
from storefront.returns import CreateReturn, can_return, can_transition, days_since

PLACED = datetime(2025, 6, 1, 9, 0, 0)


def order_on(status, created_at=PLACED):
    return Order(
        id="o-1",
        user_id="user-1",
        shipping_address=ADDRESS,
        subtotal=Decimal("50000.00"),
        discount_amount=Decimal("0.00"),
        total=Decimal("50000.00"),
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )


class TestWindow:
    def test_days_since_rounds_down(self):
        assert days_since(PLACED, PLACED + timedelta(days=3, hours=23)) == 3

    def test_day_thirty_is_still_returnable(self):
        assert can_return(order_on(OrderStatus.DELIVERED), PLACED + timedelta(days=30))

    def test_day_thirty_one_is_too_late(self):
        assert not can_return(order_on(OrderStatus.DELIVERED), PLACED + timedelta(days=31))

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.SHIPPED, OrderStatus.CANCELLED])
    def test_only_delivered_orders(self, status):
        assert not can_return(order_on(status), PLACED + timedelta(days=1))


class TestReturnTransitions:
    def test_lifecycle(self):
        assert can_transition(ReturnStatus.PENDING, ReturnStatus.APPROVED)
        assert can_transition(ReturnStatus.PENDING, ReturnStatus.REJECTED)
        assert can_transition(ReturnStatus.APPROVED, ReturnStatus.COMPLETED)

    def test_no_shortcuts_or_reversals(self):
        assert not can_transition(ReturnStatus.PENDING, ReturnStatus.COMPLETED)
        assert not can_transition(ReturnStatus.REJECTED, ReturnStatus.APPROVED)
        assert not can_transition(ReturnStatus.COMPLETED, ReturnStatus.PENDING)


async def delivered_order(store, qty=2):
    order = ok(await store.orders.create_order(CUSTOMER, CreateOrder(
        items=(OrderLine("p-cement", qty),),
        shipping_address=ADDRESS,
        payment_method=PaymentMethod.CARD,
        idempotency_key="k-1",
    )))
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        ok(await store.status.update_status(ADMIN_USER, order.id, status))
    return order


def return_for(order, quantity=1, product_id="p-cement"):
    return CreateReturn(
        order_id=order.id,
        product_id=product_id,
        quantity=quantity,
        reason=ReturnReason.DAMAGED,
        description="  Bag arrived torn  ",
    )


class TestCreateReturn:
    def test_files_pending_request_and_notifies(self, in_store, clock):
        async def scenario(store):
            order = await delivered_order(store)
            clock.advance(days=10)
            request = ok(await store.returns.create_return_request(CUSTOMER, return_for(order)))
            feed = ok(await store.notifications.list(CUSTOMER))
            return order, request, feed

        order, request, feed = in_store(scenario)
        assert request.status is ReturnStatus.PENDING
        assert request.order_id == order.id
        assert request.description == "Bag arrived torn"
        latest = feed.page.items[0]
        assert latest.title == "Return Request Submitted"
        assert latest.message == (
            f"Your return request for order #{order.short_ref} has been submitted and is pending review."
        )
        assert latest.data == {"return_id": request.id, "order_id": order.id}

    def test_undelivered_order(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, CreateOrder(
                items=(OrderLine("p-cement", 1),),
                shipping_address=ADDRESS,
                payment_method=PaymentMethod.CARD,
                idempotency_key="k-2",
            )))
            return err(await store.returns.create_return_request(CUSTOMER, return_for(order)))

        assert in_store(scenario).message == "Only delivered orders can be returned"

    def test_window_expired(self, in_store, clock):
        async def scenario(store):
            order = await delivered_order(store)
            clock.advance(days=31)
            return err(await store.returns.create_return_request(CUSTOMER, return_for(order)))

        assert in_store(scenario).message == "Return period has expired (30 days)"

    def test_product_must_be_on_the_order(self, in_store):
        async def scenario(store):
            order = await delivered_order(store)
            return err(await store.returns.create_return_request(CUSTOMER, return_for(order, product_id="p-tiles")))

        assert in_store(scenario).kind is FailureKind.VALIDATION

    def test_quantity_bounded_by_ordered_quantity(self, in_store):
        async def scenario(store):
            order = await delivered_order(store, qty=2)
            too_many = err(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=3)))
            none = err(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=0)))
            return too_many, none

        too_many, none = in_store(scenario)
        assert too_many.message == "Quantity must be between 1 and 2"
        assert none.message == "Quantity must be between 1 and 2"

    def test_earlier_requests_count_against_the_line(self, in_store):
        async def scenario(store):
            order = await delivered_order(store, qty=2)
            first = ok(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=1)))
            too_many = err(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=2)))
            last = ok(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=1)))
            exhausted = err(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=1)))
            return first, too_many, last, exhausted

        first, too_many, last, exhausted = in_store(scenario)
        assert first.quantity == last.quantity == 1
        assert too_many.message == "Quantity must be between 1 and 1"
        assert exhausted.kind is FailureKind.CONFLICT

    def test_rejected_requests_free_their_units(self, in_store):
        async def scenario(store):
            order = await delivered_order(store, qty=2)
            first = ok(await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=2)))
            ok(await store.returns.update_return_status(ADMIN_USER, first.id, ReturnStatus.REJECTED))
            return await store.returns.create_return_request(CUSTOMER, return_for(order, quantity=2))

        assert ok(in_store(scenario)).quantity == 2

    def test_someone_elses_order(self, in_store):
        async def scenario(store):
            order = await delivered_order(store)
            return err(await store.returns.create_return_request(OTHER, return_for(order)))

        assert in_store(scenario).kind is FailureKind.NOT_FOUND


class TestDecideReturn:
    def test_approve_with_refund_then_complete(self, in_store, clock):
        async def scenario(store):
            order = await delivered_order(store)
            request = ok(await store.returns.create_return_request(CUSTOMER, return_for(order)))
            clock.advance(days=1)
            approved = ok(await store.returns.update_return_status(
                ADMIN_USER, request.id, ReturnStatus.APPROVED,
                admin_notes="Courier damage", refund_amount=Decimal("50000"),
            ))
            completed = ok(await store.returns.update_return_status(ADMIN_USER, request.id, ReturnStatus.COMPLETED))
            feed = ok(await store.notifications.list(CUSTOMER, limit=50))
            return approved, completed, feed

        approved, completed, feed = in_store(scenario)
        assert approved.status is ReturnStatus.APPROVED
        assert approved.refund_amount == Decimal("50000.00")
        assert approved.admin_notes == "Courier damage"
        assert approved.decided_at is not None
        assert completed.status is ReturnStatus.COMPLETED
        titles = [n.title for n in feed.page.items]
        assert "Return Approved" in titles
        assert "Return Completed" in titles

    def test_refund_capped_at_item_value(self, in_store):
        async def scenario(store):
            order = await delivered_order(store)
            request = ok(await store.returns.create_return_request(CUSTOMER, return_for(order)))
            too_much = err(await store.returns.update_return_status(
                ADMIN_USER, request.id, ReturnStatus.APPROVED, refund_amount=Decimal("50000.01")
            ))
            negative = err(await store.returns.update_return_status(
                ADMIN_USER, request.id, ReturnStatus.APPROVED, refund_amount=Decimal("-1")
            ))
            still = ok(await store.returns.get_return(CUSTOMER, request.id))
            return too_much, negative, still

        too_much, negative, still = in_store(scenario)
        assert too_much.message == "Refund cannot exceed 50,000.00"
        assert negative.kind is FailureKind.VALIDATION
        assert still.status is ReturnStatus.PENDING

    def test_cannot_complete_before_approval(self, in_store):
        async def scenario(store):
            order = await delivered_order(store)
            request = ok(await store.returns.create_return_request(CUSTOMER, return_for(order)))
            return err(await store.returns.update_return_status(ADMIN_USER, request.id, ReturnStatus.COMPLETED))

        assert in_store(scenario).kind is FailureKind.INVALID_TRANSITION

    def test_customers_cannot_decide(self, in_store):
        async def scenario(store):
            order = await delivered_order(store)
            request = ok(await store.returns.create_return_request(CUSTOMER, return_for(order)))
            return err(await store.returns.update_return_status(CUSTOMER, request.id, ReturnStatus.APPROVED))

        assert in_store(scenario).kind is FailureKind.FORBIDDEN


class TestReturnQueries:
    def test_visibility(self, in_store):
        async def scenario(store):
            order = await delivered_order(store)
            request = ok(await store.returns.create_return_request(CUSTOMER, return_for(order)))
            owner = ok(await store.returns.get_return(CUSTOMER, request.id))
            admin = ok(await store.returns.get_return(ADMIN_USER, request.id))
            stranger = err(await store.returns.get_return(OTHER, request.id))
            mine = ok(await store.returns.list_user_returns(CUSTOMER))
            pending = ok(await store.returns.list_all_returns(ADMIN_USER, status=ReturnStatus.PENDING))
            denied = err(await store.returns.list_all_returns(CUSTOMER))
            return request, owner, admin, stranger, mine, pending, denied

        request, owner, admin, stranger, mine, pending, denied = in_store(scenario)
        assert owner.id == admin.id == request.id
        assert stranger.kind is FailureKind.NOT_FOUND
        assert mine.count == 1
        assert pending.count == 1
        assert denied.kind is FailureKind.FORBIDDEN
