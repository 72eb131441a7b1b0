"""
Order finalizer — pending order + confirmed payment ──► processing.

    verify with provider ──► conditional update (status == pending)
                                   │
                                   ├─► "Payment Received" notification  (best effort)
                                   └─► clear server-side cart           (best effort)

Finalizing twice with the same reference returns the order unchanged
and emits nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from kungfu import Result, Ok, Error

from storefront.auth import Identity, require_identity
from storefront.backend import REFERENCE_TAKEN, Backend
from storefront.errors import Failure, Failures
from storefront.models import NotificationType, Order, OrderStatus, PaymentMethod
from storefront.notifications import NotificationService
from storefront.payments import PaymentVerifier, parse_callback

logger = logging.getLogger(__name__)


class OrderFinalizer:
    def __init__(
        self,
        backend: Backend,
        notifications: NotificationService,
        verifiers: Mapping[PaymentMethod, PaymentVerifier],
    ) -> None:
        self._backend = backend
        self._notifications = notifications
        self._verifiers = dict(verifiers)

    async def finalize(
        self,
        identity: Identity | None,
        order_id: str,
        payment_method: PaymentMethod,
        transaction_id: str | None = None,
        transaction_hash: str | None = None,
    ) -> Result[Order, Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                pass

        if bool(transaction_id) == bool(transaction_hash):
            return Error(Failures.validation("Provide either a transaction id or a transaction hash"))
        reference = transaction_id or transaction_hash

        match await self._owned(user, order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                pass

        match self._already_final(order, reference):
            case Ok(None):
                pass
            case settled:
                return settled

        verifier = self._verifiers.get(payment_method)
        if verifier is None:
            return Error(Failures.validation(f"Payment method {payment_method.value} is not supported"))

        match await self._backend.orders.find_by_payment(payment_method, reference):
            case Error(e):
                return Error(e)
            case Ok(holder) if holder is not None and holder.id != order.id:
                logger.warning("Payment %s for order %s already settled order %s", reference, order_id, holder.id)
                return Error(Failures.conflict(REFERENCE_TAKEN))

        match await verifier.verify(order, reference):
            case Error(e):
                logger.warning("Payment %s for order %s not verified: %s", reference, order_id, e.message)
                return Error(e)

        match await self._backend.orders.transition(
            order_id,
            expected=OrderStatus.PENDING,
            status=OrderStatus.PROCESSING,
            payment_reference=reference,
            payment_method=payment_method,
        ):
            case Error(e):
                return Error(e)
            case Ok(applied):
                pass

        match await self._owned(user, order_id):
            case Error(e):
                return Error(e)
            case Ok(updated):
                pass

        if not applied:
            # A concurrent finalize won; replay its outcome.
            match self._already_final(updated, reference):
                case Ok(None):
                    return Error(Failures.conflict("Order changed while finalizing, try again"))
                case settled:
                    return settled

        logger.info("Order %s finalized with %s %s", order_id, payment_method.value, reference)
        await self._side_effects(updated)
        return Ok(updated)

    async def complete_redirect(self, identity: Identity | None, query: Mapping[str, str]) -> Result[Order, Failure]:
        """Hosted checkout return: parse the query string, then finalize."""
        match parse_callback(query):
            case Error(e):
                return Error(e)
            case Ok(callback):
                pass

        if callback.order_id is None:
            return Error(Failures.validation("Missing transaction reference"))

        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                pass

        match await self._owned(user, callback.order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                method = order.payment_method or PaymentMethod.CARD
                return await self.finalize(user, order.id, method, transaction_id=callback.transaction_id)

    # ─── internals ────────────────────────────────────────────────────────────

    async def _owned(self, user: Identity, order_id: str) -> Result[Order, Failure]:
        match await self._backend.orders.get(order_id):
            case Ok(order) if order is not None and order.user_id == user.user_id:
                return Ok(order)
            case Ok(_):
                return Error(Failures.not_found("Order", order_id))
            case Error(e):
                return Error(e)

    @staticmethod
    def _already_final(order: Order, reference: str) -> Result[Order | None, Failure]:
        """Ok(None) while the order is still pending and free to finalize."""
        match order.status:
            case OrderStatus.PENDING:
                return Ok(None)
            case OrderStatus.CANCELLED:
                return Error(Failures.invalid_transition("order", order.status.value, OrderStatus.PROCESSING.value))
            case _ if order.payment_reference is None:
                # Moved on by an admin without a recorded payment.
                return Error(Failures.invalid_transition("order", order.status.value, OrderStatus.PROCESSING.value))
            case _ if order.payment_reference == reference:
                return Ok(order)
            case _:
                return Error(Failures.conflict("Order was already paid with a different transaction"))

    async def _side_effects(self, order: Order) -> None:
        await self._notifications.emit(
            order.user_id,
            NotificationType.ORDER_STATUS,
            "Payment Received",
            f"Your payment for order #{order.short_ref} has been received. We're now processing your order.",
            {"order_id": order.id, "status": order.status.value},
        )
        match await self._backend.carts.clear(order.user_id):
            case Error(e):
                logger.warning("Cart for user %s not cleared after order %s: %s", order.user_id, order.id, e)


__all__ = ("OrderFinalizer",)
