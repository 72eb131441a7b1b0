"""
Coupon lookup + evaluation, and coupon administration.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from kungfu import Result, Ok, Error

from storefront._types import Clock, Money, utcnow
from storefront.auth import Identity, require_admin
from storefront.backend import Backend
from storefront.errors import Failure, Failures
from storefront.models import CartLine, Coupon, CouponType, Page, subtotal_of
from storefront.coupons._evaluate import CouponValidation, evaluate

# Everything an admin may change after creation; usage counters are not among them.
EDITABLE_FIELDS = frozenset({
    "code",
    "type",
    "discount_value",
    "min_purchase_amount",
    "max_discount_amount",
    "max_uses",
    "applies_to",
    "is_active",
    "valid_from",
    "valid_to",
    "description",
})


def check_discount(type: CouponType, discount_value: Decimal) -> Result[Decimal, Failure]:
    if discount_value < 0:
        return Error(Failures.validation("Discount value cannot be negative"))
    if type is CouponType.PERCENTAGE and discount_value > 100:
        return Error(Failures.validation("Percentage discount cannot exceed 100"))
    return Ok(discount_value)


class CouponService:
    def __init__(self, backend: Backend, shipping_credit: Money, clock: Clock = utcnow) -> None:
        self._backend = backend
        self._shipping_credit = shipping_credit
        self._clock = clock

    async def validate(
        self,
        code: str,
        subtotal: Money,
        items: Sequence[CartLine],
    ) -> Result[CouponValidation, Failure]:
        """Error only for backend failures; an unusable code is Ok(valid=False)."""
        if not code.strip():
            return Ok(CouponValidation(valid=False, message="Please enter a coupon code"))

        match await self._backend.coupons.find_by_code(code):
            case Error(e):
                return Error(e)
            case Ok(coupon):
                return Ok(evaluate(
                    coupon,
                    subtotal,
                    items,
                    now=self._clock(),
                    shipping_credit=self._shipping_credit,
                ))

    async def check(self, code: str, items: Sequence[CartLine]) -> Result[CouponValidation, Failure]:
        return await self.validate(code, subtotal_of(items), items)

    # ─── administration ───────────────────────────────────────────────────────

    async def create(
        self,
        identity: Identity | None,
        *,
        code: str,
        type: CouponType,
        discount_value: Decimal,
        min_purchase_amount: Money | None = None,
        max_discount_amount: Money | None = None,
        max_uses: int | None = None,
        applies_to: Sequence[str] = (),
        valid_from: datetime | None = None,
        valid_to: datetime | None = None,
        description: str | None = None,
    ) -> Result[Coupon, Failure]:
        match check_discount(type, discount_value):
            case Error(e):
                return Error(e)

        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)

        coupon = Coupon(
            id=str(uuid.uuid4()),
            code=code,
            type=type,
            discount_value=discount_value,
            min_purchase_amount=min_purchase_amount,
            max_discount_amount=max_discount_amount,
            max_uses=max_uses,
            applies_to=tuple(applies_to),
            valid_from=valid_from,
            valid_to=valid_to,
            description=description,
        )
        match await self._backend.coupons.find_by_code(code):
            case Ok(None):
                return await self._backend.coupons.add(coupon)
            case Ok(_):
                return Error(Failures.conflict(f"Coupon code {code.strip().upper()} already exists"))
            case Error(e):
                return Error(e)

    async def update(self, identity: Identity | None, coupon_id: str, **changes: object) -> Result[Coupon, Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)

        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            return Error(Failures.validation(f"Unknown coupon fields: {', '.join(unknown)}", fields=unknown))

        if "type" in changes or "discount_value" in changes:
            match await self._backend.coupons.get(coupon_id):
                case Error(e):
                    return Error(e)
                case Ok(None):
                    return Error(Failures.not_found("Coupon", coupon_id))
                case Ok(current):
                    pass
            match check_discount(
                changes.get("type", current.type),
                changes.get("discount_value", current.discount_value),
            ):
                case Error(e):
                    return Error(e)

        match await self._backend.coupons.update(coupon_id, **changes):
            case Ok(None):
                return Error(Failures.not_found("Coupon", coupon_id))
            case Ok(coupon):
                return Ok(coupon)
            case Error(e):
                return Error(e)

    async def deactivate(self, identity: Identity | None, coupon_id: str) -> Result[Coupon, Failure]:
        return await self.update(identity, coupon_id, is_active=False)

    async def list(
        self,
        identity: Identity | None,
        page: int = 1,
        limit: int = 20,
        include_inactive: bool = False,
    ) -> Result[Page[Coupon], Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)
        return await self._backend.coupons.list(page, limit, include_inactive)


__all__ = ("CouponService", "EDITABLE_FIELDS", "check_discount")
