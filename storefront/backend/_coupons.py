"""
Coupons and coupon usage.
"""

from __future__ import annotations

import uuid
from typing import Any

from kungfu import LazyCoroResult
from sqlalchemy import delete, or_, select, update

from storefront._types import Clock, Money, utcnow
from storefront.db import CouponTable, CouponUseTable, SessionFactory
from storefront.errors import Failure
from storefront.lift import storage
from storefront.models import Coupon, Page
from storefront.backend._rows import coupon_from_row, paged


def normalize_code(code: str) -> str:
    return code.strip().upper()


class CouponRepo:
    def __init__(self, session_factory: SessionFactory, clock: Clock = utcnow) -> None:
        self._session = session_factory
        self._clock = clock

    def find_by_code(self, code: str) -> LazyCoroResult[Coupon | None, Failure]:
        """Case-insensitive lookup; codes are stored upper-case."""
        normalized = normalize_code(code)

        async def impl() -> Coupon | None:
            async with self._session() as session:
                row = await session.scalar(select(CouponTable).where(CouponTable.code == normalized))
                return coupon_from_row(row) if row else None
        return storage(impl)

    def get(self, coupon_id: str) -> LazyCoroResult[Coupon | None, Failure]:
        async def impl() -> Coupon | None:
            async with self._session() as session:
                row = await session.get(CouponTable, coupon_id)
                return coupon_from_row(row) if row else None
        return storage(impl)

    def add(self, coupon: Coupon) -> LazyCoroResult[Coupon, Failure]:
        async def impl() -> Coupon:
            async with self._session() as session:
                row = CouponTable(
                    id=coupon.id,
                    code=normalize_code(coupon.code),
                    type=coupon.type.value,
                    discount_value=coupon.discount_value,
                    min_purchase_amount=coupon.min_purchase_amount,
                    max_discount_amount=coupon.max_discount_amount,
                    max_uses=coupon.max_uses,
                    current_uses=coupon.current_uses,
                    applies_to=list(coupon.applies_to),
                    is_active=coupon.is_active,
                    valid_from=coupon.valid_from,
                    valid_to=coupon.valid_to,
                    description=coupon.description,
                    created_at=self._clock(),
                )
                session.add(row)
                await session.commit()
                return coupon_from_row(row)
        return storage(impl)

    def update(self, coupon_id: str, **changes: Any) -> LazyCoroResult[Coupon | None, Failure]:
        async def impl() -> Coupon | None:
            async with self._session() as session:
                row = await session.get(CouponTable, coupon_id)
                if row is None:
                    return None
                for name, value in changes.items():
                    match name:
                        case "code":
                            value = normalize_code(value)
                        case "type":
                            value = value.value
                        case "applies_to":
                            value = list(value)
                    setattr(row, name, value)
                await session.commit()
                return coupon_from_row(row)
        return storage(impl)

    def list(self, page: int, limit: int, include_inactive: bool = False) -> LazyCoroResult[Page[Coupon], Failure]:
        async def impl() -> Page[Coupon]:
            async with self._session() as session:
                stmt = select(CouponTable).order_by(CouponTable.created_at.desc())
                if not include_inactive:
                    stmt = stmt.where(CouponTable.is_active.is_(True))
                rows, count = await paged(session, stmt, page, limit)
                return Page(tuple(coupon_from_row(r) for r in rows), count, page, limit)
        return storage(impl)

    def claim_use(
        self,
        coupon_id: str,
        order_id: str,
        user_id: str,
        discount_amount: Money,
    ) -> LazyCoroResult[bool, Failure]:
        """
        Count one use against the cap.

        The increment is conditional on current_uses < max_uses, so two
        concurrent checkouts cannot both take the last use. False = exhausted.
        """
        async def impl() -> bool:
            async with self._session() as session:
                result = await session.execute(
                    update(CouponTable)
                    .where(
                        CouponTable.id == coupon_id,
                        or_(CouponTable.max_uses.is_(None), CouponTable.current_uses < CouponTable.max_uses),
                    )
                    .values(current_uses=CouponTable.current_uses + 1)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    return False
                session.add(CouponUseTable(
                    id=str(uuid.uuid4()),
                    coupon_id=coupon_id,
                    order_id=order_id,
                    user_id=user_id,
                    discount_amount=discount_amount,
                    created_at=self._clock(),
                ))
                await session.commit()
                return True
        return storage(impl)

    def release_use(self, coupon_id: str, order_id: str) -> LazyCoroResult[None, Failure]:
        """Undo claim_use for an order that was rolled back."""
        async def impl() -> None:
            async with self._session() as session:
                result = await session.execute(
                    delete(CouponUseTable).where(
                        CouponUseTable.coupon_id == coupon_id,
                        CouponUseTable.order_id == order_id,
                    )
                )
                if result.rowcount:
                    await session.execute(
                        update(CouponTable)
                        .where(CouponTable.id == coupon_id, CouponTable.current_uses > 0)
                        .values(current_uses=CouponTable.current_uses - 1)
                    )
                await session.commit()
        return storage(impl)


__all__ = ("CouponRepo", "normalize_code")
