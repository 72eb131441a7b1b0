"""Coupon evaluation and the coupon service."""

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from conftest import ADMIN_USER, CEMENT, CUSTOMER, TILES, WELCOME10, err, ok
from storefront.coupons import EXHAUSTED, INVALID, evaluate
from storefront.errors import FailureKind
from storefront.models import CartLine, CouponType

NOW = datetime(2025, 6, 15, 12, 0, 0)
CREDIT = Decimal("10.00")
CART = [CartLine(CEMENT, 2)]  # 100,000


def check(coupon, lines=CART, subtotal=Decimal("100000.00")):
    return evaluate(coupon, subtotal, lines, now=NOW, shipping_credit=CREDIT)


class TestRejections:
    def test_missing_coupon(self):
        result = check(None)
        assert not result.valid
        assert result.message == INVALID

    def test_inactive(self):
        assert check(replace(WELCOME10, is_active=False)).message == INVALID

    def test_expired(self):
        result = check(replace(WELCOME10, valid_to=NOW - timedelta(days=1)))
        assert not result.valid
        assert result.message == INVALID

    def test_not_started(self):
        assert check(replace(WELCOME10, valid_from=NOW + timedelta(hours=1))).message == INVALID

    def test_below_minimum_purchase(self):
        result = check(WELCOME10, [CartLine(TILES, 1)], Decimal("25000.00"))
        assert not result.valid
        assert result.message == "This coupon requires a minimum purchase of 50,000.00"
        assert result.discount_amount == 0

    def test_usage_limit_reached(self):
        result = check(replace(WELCOME10, max_uses=5, current_uses=5))
        assert not result.valid
        assert result.message == EXHAUSTED


class TestDiscounts:
    def test_percentage(self):
        result = check(WELCOME10)
        assert result.valid
        assert result.discount_amount == Decimal("10000.00")
        assert result.code == "WELCOME10"
        assert result.message == "Coupon applied! You saved 10,000.00"

    def test_percentage_capped(self):
        result = check(replace(WELCOME10, max_discount_amount=Decimal("5000.00")))
        assert result.discount_amount == Decimal("5000.00")

    def test_percentage_limited_to_categories(self):
        lines = [CartLine(CEMENT, 1), CartLine(TILES, 1)]
        coupon = replace(WELCOME10, applies_to=("Flooring",))
        result = check(coupon, lines, Decimal("75000.00"))
        assert result.discount_amount == Decimal("2500.00")

    def test_fixed_amount(self):
        coupon = replace(WELCOME10, type=CouponType.FIXED_AMOUNT, discount_value=Decimal("15000"))
        assert check(coupon).discount_amount == Decimal("15000.00")

    def test_fixed_amount_never_exceeds_subtotal(self):
        coupon = replace(
            WELCOME10,
            type=CouponType.FIXED_AMOUNT,
            discount_value=Decimal("500000"),
            min_purchase_amount=None,
        )
        result = check(coupon, [CartLine(TILES, 1)], Decimal("25000.00"))
        assert result.discount_amount == Decimal("25000.00")

    def test_free_shipping_uses_shipping_credit(self):
        coupon = replace(WELCOME10, type=CouponType.FREE_SHIPPING, discount_value=Decimal("0"))
        assert check(coupon).discount_amount == CREDIT


class TestCouponService:
    def test_lookup_is_case_insensitive(self, in_store):
        async def scenario(store):
            return ok(await store.coupons.check(" welcome10 ", CART))

        result = in_store(scenario)
        assert result.valid
        assert result.discount_amount == Decimal("10000.00")

    def test_blank_code(self, in_store):
        async def scenario(store):
            return ok(await store.coupons.check("   ", CART))

        result = in_store(scenario)
        assert not result.valid
        assert result.message == "Please enter a coupon code"

    def test_unknown_code(self, in_store):
        async def scenario(store):
            return ok(await store.coupons.check("NOPE", CART))

        assert in_store(scenario).message == INVALID

    def test_create_requires_admin(self, in_store):
        async def scenario(store):
            return await store.coupons.create(
                CUSTOMER, code="SUMMER", type=CouponType.FIXED_AMOUNT, discount_value=Decimal("1000")
            )

        assert err(in_store(scenario)).kind is FailureKind.FORBIDDEN

    def test_create_rejects_duplicate_code(self, in_store):
        async def scenario(store):
            return await store.coupons.create(
                ADMIN_USER, code="welcome10", type=CouponType.PERCENTAGE, discount_value=Decimal("5")
            )

        assert err(in_store(scenario)).kind is FailureKind.CONFLICT

    def test_deactivated_coupon_no_longer_applies(self, in_store):
        async def scenario(store):
            created = ok(await store.coupons.create(
                ADMIN_USER, code="spring", type=CouponType.FIXED_AMOUNT, discount_value=Decimal("1000")
            ))
            assert created.code == "SPRING"
            ok(await store.coupons.deactivate(ADMIN_USER, created.id))
            return ok(await store.coupons.check("SPRING", CART))

        assert in_store(scenario).message == INVALID

    def test_listing_hides_inactive_by_default(self, in_store):
        async def scenario(store):
            ok(await store.coupons.deactivate(ADMIN_USER, "c-welcome"))
            active = ok(await store.coupons.list(ADMIN_USER))
            every = ok(await store.coupons.list(ADMIN_USER, include_inactive=True))
            missing = err(await store.coupons.update(ADMIN_USER, "c-ghost", is_active=True))
            return active, every, missing

        active, every, missing = in_store(scenario)
        assert active.count == 0
        assert [c.code for c in every.items] == ["WELCOME10"]
        assert missing.kind is FailureKind.NOT_FOUND

    def test_updates_are_checked_like_new_coupons(self, in_store):
        async def scenario(store):
            over = err(await store.coupons.update(ADMIN_USER, "c-welcome", discount_value=Decimal("150")))
            negative = err(await store.coupons.update(
                ADMIN_USER, "c-welcome", type=CouponType.FIXED_AMOUNT, discount_value=Decimal("-1")
            ))
            unknown = err(await store.coupons.update(ADMIN_USER, "c-welcome", current_uses=0, colour="red"))
            switched = ok(await store.coupons.update(
                ADMIN_USER, "c-welcome", type=CouponType.FIXED_AMOUNT, discount_value=Decimal("150")
            ))
            return over, negative, unknown, switched

        over, negative, unknown, switched = in_store(scenario)
        assert over.message == "Percentage discount cannot exceed 100"
        assert negative.message == "Discount value cannot be negative"
        assert unknown.kind is FailureKind.VALIDATION
        assert unknown.details == {"fields": ["colour", "current_uses"]}
        assert switched.type is CouponType.FIXED_AMOUNT
        assert switched.discount_value == Decimal("150")
