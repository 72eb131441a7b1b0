"""
Server-side per-user cart.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime

from kungfu import LazyCoroResult
from sqlalchemy import delete, select

from storefront._types import Clock, utcnow
from storefront.db import CartItemTable, CategoryTable, ProductTable, SessionFactory
from storefront.errors import Failure
from storefront.lift import storage
from storefront.models import CartLine
from storefront.backend._rows import product_from_row


class CartRepo:
    def __init__(self, session_factory: SessionFactory, clock: Clock = utcnow) -> None:
        self._session = session_factory
        self._clock = clock

    def lines(self, user_id: str) -> LazyCoroResult[list[CartLine], Failure]:
        async def impl() -> list[CartLine]:
            async with self._session() as session:
                rows = await session.execute(
                    select(CartItemTable.quantity, ProductTable, CategoryTable.name)
                    .join(ProductTable, CartItemTable.product_id == ProductTable.id)
                    .outerjoin(CategoryTable, ProductTable.category_id == CategoryTable.id)
                    .where(CartItemTable.user_id == user_id)
                    .order_by(CartItemTable.created_at, CartItemTable.id)
                )
                return [
                    CartLine(product=product_from_row(product, category), quantity=quantity)
                    for quantity, product, category in rows.all()
                ]
        return storage(impl)

    def add(self, user_id: str, product_id: str, quantity: int) -> LazyCoroResult[None, Failure]:
        """Increment the line if present, otherwise insert it."""
        async def impl() -> None:
            async with self._session() as session:
                row = await session.scalar(
                    select(CartItemTable).where(
                        CartItemTable.user_id == user_id,
                        CartItemTable.product_id == product_id,
                    )
                )
                now = self._clock()
                if row is None:
                    session.add(self._new_row(user_id, product_id, quantity, now))
                else:
                    row.quantity += quantity
                    row.updated_at = now
                await session.commit()
        return storage(impl)

    def set_quantity(self, user_id: str, product_id: str, quantity: int) -> LazyCoroResult[bool, Failure]:
        async def impl() -> bool:
            async with self._session() as session:
                row = await session.scalar(
                    select(CartItemTable).where(
                        CartItemTable.user_id == user_id,
                        CartItemTable.product_id == product_id,
                    )
                )
                if row is None:
                    return False
                row.quantity = quantity
                row.updated_at = self._clock()
                await session.commit()
                return True
        return storage(impl)

    def remove(self, user_id: str, product_id: str) -> LazyCoroResult[None, Failure]:
        async def impl() -> None:
            async with self._session() as session:
                await session.execute(
                    delete(CartItemTable).where(
                        CartItemTable.user_id == user_id,
                        CartItemTable.product_id == product_id,
                    )
                )
                await session.commit()
        return storage(impl)

    def clear(self, user_id: str) -> LazyCoroResult[None, Failure]:
        async def impl() -> None:
            async with self._session() as session:
                await session.execute(delete(CartItemTable).where(CartItemTable.user_id == user_id))
                await session.commit()
        return storage(impl)

    def insert_many(self, user_id: str, lines: Sequence[tuple[str, int]]) -> LazyCoroResult[None, Failure]:
        """Insert (product_id, quantity) pairs in one round-trip."""
        async def impl() -> None:
            async with self._session() as session:
                now = self._clock()
                session.add_all(self._new_row(user_id, pid, qty, now) for pid, qty in lines)
                await session.commit()
        return storage(impl)

    @staticmethod
    def _new_row(user_id: str, product_id: str, quantity: int, now: datetime) -> CartItemTable:
        return CartItemTable(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            created_at=now,
            updated_at=now,
        )


__all__ = ("CartRepo",)
