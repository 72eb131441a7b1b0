"""
Coupons — evaluation and administration.

    from storefront import coupons as C

    validation = C.evaluate(coupon, subtotal, lines, now=now, shipping_credit=credit)
"""

from storefront.coupons._evaluate import (
    CouponValidation,
    evaluate,
    rejection,
    discount_for,
    INVALID,
    EXHAUSTED,
)
from storefront.coupons._service import CouponService

__all__ = (
    "CouponValidation",
    "evaluate",
    "rejection",
    "discount_for",
    "INVALID",
    "EXHAUSTED",
    "CouponService",
)
