"""
Order factory — cart lines in, pending order out.

Three writes with no shared transaction, composed as a saga:

    insert_order ──► claim_coupon ──► insert_items
         ▲                 ▲
    delete order      release use      (compensations, reverse order)

The whole placement runs under a client idempotency key, so a
double-click or a second tab replays the first order instead of
creating another.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta

from kungfu import Result, Ok, Error, LazyCoroResult

from storefront import idempotency as I
from storefront import saga as S
from storefront._types import ZERO, Clock, Money, utcnow
from storefront.auth import Identity, require_identity
from storefront.backend import Backend
from storefront.config import Settings
from storefront.coupons import EXHAUSTED, CouponService
from storefront.errors import Failure, FailureKind, Failures
from storefront.models import (
    CartLine,
    Coupon,
    NotificationType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    ShippingAddress,
    subtotal_of,
)
from storefront.notifications import NotificationService

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Command
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class OrderLine:
    product_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class CreateOrder:
    """
    Checkout submission. Carries product ids and quantities only;
    prices are always read from the catalog.
    """
    items: tuple[OrderLine, ...]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    idempotency_key: str
    coupon_code: str | None = None
    notes: str | None = None

    @classmethod
    def from_cart(
        cls,
        lines: Sequence[CartLine],
        shipping_address: ShippingAddress,
        payment_method: PaymentMethod,
        idempotency_key: str,
        coupon_code: str | None = None,
        notes: str | None = None,
    ) -> CreateOrder:
        return cls(
            items=tuple(OrderLine(line.product.id, line.quantity) for line in lines),
            shipping_address=shipping_address,
            payment_method=payment_method,
            idempotency_key=idempotency_key,
            coupon_code=coupon_code,
            notes=notes,
        )

    def fingerprint(self) -> str:
        payload = {
            "items": sorted([line.product_id, line.quantity] for line in self.items),
            "address": self.shipping_address.to_dict(),
            "payment_method": self.payment_method.value,
            "coupon": (self.coupon_code or "").strip().upper(),
            "notes": self.notes or "",
        }
        return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()


def check_command(command: CreateOrder) -> Result[CreateOrder, Failure]:
    if not command.idempotency_key.strip():
        return Error(Failures.validation("Idempotency key is required"))
    if not command.items:
        return Error(Failures.validation("Your cart is empty"))
    if any(line.quantity < 1 for line in command.items):
        return Error(Failures.validation("Quantity must be at least 1"))
    missing = command.shipping_address.missing_fields()
    if missing:
        return Error(Failures.validation(
            "Please fill in all required shipping fields",
            missing=missing,
        ))
    return Ok(command)


# ═══════════════════════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class _Priced:
    lines: tuple[CartLine, ...]
    coupon: Coupon | None
    discount: Money


class OrderFactory:
    def __init__(
        self,
        backend: Backend,
        coupons: CouponService,
        notifications: NotificationService,
        settings: Settings,
        clock: Clock = utcnow,
        keys: I.Store[str] | None = None,
    ) -> None:
        self._backend = backend
        self._coupons = coupons
        self._notifications = notifications
        self._delivery = timedelta(days=settings.delivery_days)
        self._clock = clock
        self._keys = keys if keys is not None else I.SQLAlchemyStore(backend.session_factory, clock)
        self._policy = I.Policy().with_ttl(delta=settings.idempotency_ttl).with_on_pending(I.FAIL)

    async def create_order(self, identity: Identity | None, command: CreateOrder) -> Result[Order, Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                pass
        match check_command(command):
            case Error(e):
                return Error(e)

        executor = (
            I.idempotent(lambda cmd: self._place(user, cmd))
            .key(lambda cmd: f"order:{user.user_id}:{cmd.idempotency_key}")
            .fingerprint(CreateOrder.fingerprint)
            .store(self._keys)
            .policy(self._policy)
            .build()
        )

        match await executor.run(command):
            case Error(e):
                return Error(_from_idempotency(e))
            case Ok(outcome):
                pass

        match await self._backend.orders.get(outcome.value):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Failures.not_found("Order", outcome.value))
            case Ok(order):
                pass

        if outcome.from_cache:
            logger.info("Replayed order %s for key %s", order.id, command.idempotency_key)
        else:
            logger.info("Order %s placed by %s, total %s", order.id, user.user_id, order.total)
            await self._notifications.emit(
                user.user_id,
                NotificationType.ORDER_STATUS,
                "Order Placed",
                f"Your order #{order.short_ref} has been placed successfully.",
                {"order_id": order.id},
            )
        return Ok(order)

    # ─── placement ────────────────────────────────────────────────────────────

    def _place(self, user: Identity, command: CreateOrder) -> LazyCoroResult[str, Failure]:
        async def impl() -> Result[str, Failure]:
            match await self._price(command):
                case Error(e):
                    return Error(e)
                case Ok(priced):
                    pass

            draft = self._draft(user, command, priced)
            key = f"{user.user_id}:{command.idempotency_key}"
            match await S.run(self._saga(user, key, draft, priced.coupon)):
                case Ok(_):
                    return Ok(draft.id)
                case Error(e):
                    if e.step_failed == "claim_coupon" and isinstance(e.error, Failure) \
                            and e.error.kind is FailureKind.VALIDATION:
                        return Error(e.error)
                    logger.error(
                        "Order %s failed at %s (rollback complete: %s)",
                        draft.id, e.step_failed, e.rollback_complete,
                    )
                    return Error(Failures.partial_failure("Failed to create order", e.error))
        return LazyCoroResult(impl)

    async def _price(self, command: CreateOrder) -> Result[_Priced, Failure]:
        match await self._backend.products.get_many(line.product_id for line in command.items):
            case Error(e):
                return Error(e)
            case Ok(products):
                pass

        lines: list[CartLine] = []
        for item in command.items:
            product = products.get(item.product_id)
            if product is None:
                return Error(Failures.validation(f"Product {item.product_id} is no longer available"))
            if not product.in_stock:
                return Error(Failures.validation(f"{product.name} is out of stock"))
            lines.append(CartLine(product, item.quantity))

        if not command.coupon_code:
            return Ok(_Priced(tuple(lines), None, ZERO))

        match await self._coupons.validate(command.coupon_code, subtotal_of(lines), lines):
            case Error(e):
                return Error(e)
            case Ok(validation) if not validation.valid:
                return Error(Failures.validation(validation.message))
            case Ok(validation):
                return Ok(_Priced(tuple(lines), validation.coupon, validation.discount_amount))

    def _draft(self, user: Identity, command: CreateOrder, priced: _Priced) -> Order:
        now = self._clock()
        order_id = str(uuid.uuid4())
        subtotal = subtotal_of(priced.lines)
        discount = priced.discount
        return Order(
            id=order_id,
            user_id=user.user_id,
            shipping_address=command.shipping_address,
            subtotal=subtotal,
            discount_amount=discount,
            total=subtotal - discount,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
            items=tuple(
                OrderItem(
                    id=str(uuid.uuid4()),
                    order_id=order_id,
                    product_id=line.product.id,
                    quantity=line.quantity,
                    price=line.product.unit_price,
                )
                for line in priced.lines
            ),
            payment_method=command.payment_method,
            coupon_code=priced.coupon.code if priced.coupon else None,
            notes=command.notes,
            estimated_delivery=now + self._delivery,
        )

    def _saga(self, user: Identity, key: str, draft: Order, coupon: Coupon | None) -> S.SagaExpr[object, Failure]:
        orders = self._backend.orders
        insert_order = S.step(
            "insert_order",
            orders.insert(draft, idempotency_key=key),
            compensate=S.undo(lambda order: orders.delete(order.id)),
        )
        insert_items = S.step("insert_items", orders.insert_items(draft.id, draft.items))

        if coupon is None:
            return insert_order.then(lambda _: insert_items)

        coupons = self._backend.coupons
        claim = S.step(
            "claim_coupon",
            self._claim(coupon, draft, user),
            compensate=S.undo(lambda c: coupons.release_use(c.id, draft.id)),
        )
        return insert_order.then(lambda _: claim).then(lambda _: insert_items)

    def _claim(self, coupon: Coupon, draft: Order, user: Identity) -> LazyCoroResult[Coupon, Failure]:
        async def impl() -> Result[Coupon, Failure]:
            match await self._backend.coupons.claim_use(coupon.id, draft.id, user.user_id, draft.discount_amount):
                case Ok(True):
                    return Ok(coupon)
                case Ok(False):
                    return Error(Failures.validation(EXHAUSTED))
                case Error(e):
                    return Error(e)
        return LazyCoroResult(impl)


def _from_idempotency(error: I.IdempotencyError[Failure]) -> Failure:
    match error.kind:
        case I.IdempotencyErrorKind.EXECUTION if error.original_error is not None:
            return error.original_error
        case I.IdempotencyErrorKind.EXECUTION:
            return Failures.partial_failure("Failed to create order")
        case I.IdempotencyErrorKind.INPUT_MISMATCH:
            return Failures.conflict("This checkout key was already used for a different order")
        case I.IdempotencyErrorKind.CONFLICT | I.IdempotencyErrorKind.TIMEOUT:
            return Failures.conflict("This order is already being placed")
        case _:
            return Failure(FailureKind.STORAGE, error.message)


__all__ = ("OrderFactory", "CreateOrder", "OrderLine", "check_command")
