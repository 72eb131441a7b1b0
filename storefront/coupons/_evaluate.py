"""
Coupon evaluation. Pure: no lookups, no usage counting.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from storefront._types import ZERO, Money, money
from storefront.models import CartLine, Coupon, CouponType

INVALID = "Invalid or expired coupon code"
EXHAUSTED = "This coupon has reached its usage limit"


@dataclass(frozen=True, slots=True)
class CouponValidation:
    valid: bool
    message: str
    discount_amount: Money = ZERO
    code: str | None = None
    coupon: Coupon | None = None


def _fmt(amount: Money) -> str:
    return f"{amount:,.2f}"


def rejection(coupon: Coupon | None, subtotal: Money, now: datetime) -> str | None:
    """First reason the coupon cannot be applied, or None."""
    if coupon is None or not coupon.is_active:
        return INVALID
    if coupon.valid_from is not None and now < coupon.valid_from:
        return INVALID
    if coupon.valid_to is not None and now > coupon.valid_to:
        return INVALID
    if coupon.min_purchase_amount is not None and subtotal < coupon.min_purchase_amount:
        return f"This coupon requires a minimum purchase of {_fmt(coupon.min_purchase_amount)}"
    if coupon.max_uses is not None and coupon.current_uses >= coupon.max_uses:
        return EXHAUSTED
    return None


def discount_for(
    coupon: Coupon,
    subtotal: Money,
    items: Sequence[CartLine],
    shipping_credit: Money,
) -> Money:
    match coupon.type:
        case CouponType.PERCENTAGE:
            if coupon.applies_to:
                base = money(sum(
                    (line.line_total for line in items if line.product.category in coupon.applies_to),
                    ZERO,
                ))
            else:
                base = subtotal
            amount = base * coupon.discount_value / Decimal(100)
        case CouponType.FIXED_AMOUNT:
            amount = coupon.discount_value
        case CouponType.FREE_SHIPPING:
            amount = shipping_credit

    if coupon.max_discount_amount is not None:
        amount = min(amount, coupon.max_discount_amount)
    return money(max(ZERO, min(amount, subtotal)))


def evaluate(
    coupon: Coupon | None,
    subtotal: Money,
    items: Sequence[CartLine],
    *,
    now: datetime,
    shipping_credit: Money,
) -> CouponValidation:
    """
    Decide whether `coupon` applies to this cart and how much it takes off.

    Never raises; an unusable coupon yields valid=False with the
    user-facing reason.
    """
    reason = rejection(coupon, subtotal, now)
    if reason is not None or coupon is None:
        return CouponValidation(valid=False, message=reason or INVALID)

    amount = discount_for(coupon, subtotal, items, shipping_credit)
    message = f"Coupon applied! You saved {_fmt(amount)}" if amount > ZERO else "Coupon applied"
    return CouponValidation(
        valid=True,
        message=message,
        discount_amount=amount,
        code=coupon.code,
        coupon=coupon,
    )


__all__ = ("CouponValidation", "evaluate", "rejection", "discount_for", "INVALID", "EXHAUSTED")
