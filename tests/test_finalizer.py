"""Payment finalization: verify, move to processing, replay safely."""

from kungfu import Error, Ok

from conftest import ADDRESS, ADMIN_USER, CUSTOMER, OTHER, err, ok
from storefront.backend import REFERENCE_TAKEN
from storefront.errors import FailureKind, Failures
from storefront.models import OrderStatus, PaymentMethod
from storefront.orders import CreateOrder, OrderLine
from storefront.payments import CardDetails, CardPayment

CARD = CardPayment(CardDetails("4242 4242 4242 4242", "12/30", "123"))


def new_order(method=PaymentMethod.TEST_CARD, key="k-1"):
    return CreateOrder(
        items=(OrderLine("p-cement", 1),),
        shipping_address=ADDRESS,
        payment_method=method,
        idempotency_key=key,
    )


async def paid_order(store):
    """A pending order plus the id of a sandbox charge covering it."""
    order = ok(await store.orders.create_order(CUSTOMER, new_order()))
    result = await store.payments.dispatch(order, PaymentMethod.TEST_CARD, CARD)
    assert result.success, result.error
    return order, result.transaction_id


class StubHostedVerifier:
    async def verify(self, order, reference):
        if reference == "flw-777":
            return Ok(reference)
        return Error(Failures.provider("Payment could not be verified: status is failed"))


class TestFinalize:
    def test_moves_order_to_processing(self, in_store):
        async def scenario(store):
            ok(await store.backend.carts.add(CUSTOMER.user_id, "p-tiles", 1))
            order, charge_id = await paid_order(store)
            finalized = ok(await store.finalizer.finalize(
                CUSTOMER, order.id, PaymentMethod.TEST_CARD, transaction_id=charge_id
            ))
            cart = ok(await store.backend.carts.lines(CUSTOMER.user_id))
            feed = ok(await store.notifications.list(CUSTOMER))
            return finalized, charge_id, cart, feed

        finalized, charge_id, cart, feed = in_store(scenario)
        assert finalized.status is OrderStatus.PROCESSING
        assert finalized.payment_reference == charge_id
        assert finalized.payment_method is PaymentMethod.TEST_CARD
        assert cart == []
        assert [n.title for n in feed.page.items].count("Payment Received") == 1

    def test_second_finalize_is_a_no_op(self, in_store):
        async def scenario(store):
            order, charge_id = await paid_order(store)
            first = ok(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.TEST_CARD, charge_id))
            before = ok(await store.notifications.list(CUSTOMER)).page.count
            second = ok(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.TEST_CARD, charge_id))
            after = ok(await store.notifications.list(CUSTOMER)).page.count
            return first, second, before, after

        first, second, before, after = in_store(scenario)
        assert second.id == first.id
        assert second.status is OrderStatus.PROCESSING
        assert second.updated_at == first.updated_at
        assert after == before

    def test_unverified_payment_leaves_order_pending(self, in_store):
        async def scenario(store):
            order, _ = await paid_order(store)
            failure = err(await store.finalizer.finalize(
                CUSTOMER, order.id, PaymentMethod.TEST_CARD, transaction_id="TR-forged"
            ))
            reloaded = ok(await store.queries.get_order(CUSTOMER, order.id))
            return failure, reloaded

        failure, reloaded = in_store(scenario)
        assert failure.kind is FailureKind.PROVIDER
        assert failure.message == "Payment could not be verified: charge not found"
        assert reloaded.status is OrderStatus.PENDING
        assert reloaded.payment_reference is None

    def test_different_reference_after_payment_conflicts(self, in_store):
        async def scenario(store):
            order, charge_id = await paid_order(store)
            ok(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.TEST_CARD, charge_id))
            return err(await store.finalizer.finalize(
                CUSTOMER, order.id, PaymentMethod.TEST_CARD, transaction_id="TR-another"
            ))

        assert in_store(scenario).kind is FailureKind.CONFLICT

    def test_needs_exactly_one_reference(self, in_store):
        async def scenario(store):
            order, charge_id = await paid_order(store)
            neither = err(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.TEST_CARD))
            both = err(await store.finalizer.finalize(
                CUSTOMER, order.id, PaymentMethod.CRYPTO, transaction_id=charge_id, transaction_hash="0xabc"
            ))
            return neither, both

        neither, both = in_store(scenario)
        assert neither.kind is FailureKind.VALIDATION
        assert both.kind is FailureKind.VALIDATION

    def test_other_users_order_is_not_found(self, in_store):
        async def scenario(store):
            order, charge_id = await paid_order(store)
            return err(await store.finalizer.finalize(OTHER, order.id, PaymentMethod.TEST_CARD, charge_id))

        assert in_store(scenario).kind is FailureKind.NOT_FOUND

    def test_cancelled_order_cannot_be_finalized(self, in_store):
        async def scenario(store):
            order, charge_id = await paid_order(store)
            ok(await store.status.update_status(ADMIN_USER, order.id, OrderStatus.CANCELLED))
            return err(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.TEST_CARD, charge_id))

        assert in_store(scenario).kind is FailureKind.INVALID_TRANSITION

    def test_order_moved_on_without_payment_is_not_finalized(self, in_store):
        async def scenario(store):
            order, charge_id = await paid_order(store)
            ok(await store.status.update_status(ADMIN_USER, order.id, OrderStatus.PROCESSING))
            return err(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.TEST_CARD, charge_id))

        failure = in_store(scenario)
        assert failure.kind is FailureKind.INVALID_TRANSITION
        assert "different transaction" not in failure.message

    def test_reference_settles_one_order_only(self, in_store):
        async def scenario(store):
            first = ok(await store.orders.create_order(CUSTOMER, new_order(key="k-1")))
            second = ok(await store.orders.create_order(CUSTOMER, new_order(key="k-2")))
            moves = [
                await store.backend.orders.transition(
                    order.id,
                    expected=OrderStatus.PENDING,
                    status=OrderStatus.PROCESSING,
                    payment_method=PaymentMethod.TEST_CARD,
                    payment_reference="ch-1",
                )
                for order in (first, second)
            ]
            reloaded = ok(await store.queries.get_order(CUSTOMER, second.id))
            return moves, reloaded

        (applied, clashed), reloaded = in_store(scenario)
        assert ok(applied) is True
        assert err(clashed).kind is FailureKind.CONFLICT
        assert err(clashed).message == REFERENCE_TAKEN
        assert reloaded.status is OrderStatus.PENDING

    def test_method_without_verifier_is_rejected(self, in_store):
        async def scenario(store):
            order, _ = await paid_order(store)
            return err(await store.finalizer.finalize(
                CUSTOMER, order.id, PaymentMethod.CRYPTO, transaction_hash="0xabc"
            ))

        failure = in_store(scenario)
        assert failure.kind is FailureKind.VALIDATION
        assert failure.message == "Payment method crypto is not supported"


class TestRedirectCompletion:
    def test_successful_redirect_finalizes(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order(PaymentMethod.CARD)))
            query = {"status": "successful", "tx_ref": f"{order.id}-0a1b2c3d", "transaction_id": "flw-777"}
            return ok(await store.finalizer.complete_redirect(CUSTOMER, query))

        order = in_store(scenario, verifiers={PaymentMethod.CARD: StubHostedVerifier()})
        assert order.status is OrderStatus.PROCESSING
        assert order.payment_reference == "flw-777"

    def test_cancelled_redirect_keeps_order_pending(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order(PaymentMethod.CARD)))
            query = {"status": "cancelled", "tx_ref": f"{order.id}-0a1b2c3d"}
            failure = err(await store.finalizer.complete_redirect(CUSTOMER, query))
            reloaded = ok(await store.queries.get_order(CUSTOMER, order.id))
            return failure, reloaded

        failure, reloaded = in_store(scenario, verifiers={PaymentMethod.CARD: StubHostedVerifier()})
        assert failure.kind is FailureKind.CANCELLED
        assert reloaded.status is OrderStatus.PENDING

    def test_failed_verification_is_reported(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, new_order(PaymentMethod.MOBILE_MONEY)))
            query = {"status": "successful", "tx_ref": f"{order.id}-0a1b2c3d", "transaction_id": "flw-000"}
            return err(await store.finalizer.complete_redirect(CUSTOMER, query))

        failure = in_store(scenario, verifiers={PaymentMethod.MOBILE_MONEY: StubHostedVerifier()})
        assert failure.kind is FailureKind.PROVIDER
