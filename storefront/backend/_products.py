"""
Products and categories.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from kungfu import LazyCoroResult
from sqlalchemy import select, update

from storefront._types import Clock, Money, utcnow
from storefront.db import CategoryTable, ProductTable, SessionFactory
from storefront.errors import Failure
from storefront.lift import storage
from storefront.models import Product
from storefront.backend._rows import product_from_row


def _with_category():
    return select(ProductTable, CategoryTable.name).outerjoin(
        CategoryTable, ProductTable.category_id == CategoryTable.id
    )


class ProductRepo:
    def __init__(self, session_factory: SessionFactory, clock: Clock = utcnow) -> None:
        self._session = session_factory
        self._clock = clock

    def get(self, product_id: str) -> LazyCoroResult[Product | None, Failure]:
        async def impl() -> Product | None:
            async with self._session() as session:
                row = (await session.execute(_with_category().where(ProductTable.id == product_id))).first()
                return product_from_row(row[0], row[1]) if row else None
        return storage(impl)

    def get_many(self, product_ids: Iterable[str]) -> LazyCoroResult[dict[str, Product], Failure]:
        ids = list(set(product_ids))

        async def impl() -> dict[str, Product]:
            async with self._session() as session:
                rows = await session.execute(_with_category().where(ProductTable.id.in_(ids)))
                return {p.id: product_from_row(p, name) for p, name in rows.all()}
        return storage(impl)

    def add(self, product: Product) -> LazyCoroResult[Product, Failure]:
        """Insert a product, creating its category by name if needed."""
        async def impl() -> Product:
            async with self._session() as session:
                category_id = None
                if product.category:
                    category_id = await session.scalar(
                        select(CategoryTable.id).where(CategoryTable.name == product.category)
                    )
                    if category_id is None:
                        category_id = str(uuid.uuid4())
                        session.add(CategoryTable(id=category_id, name=product.category))
                session.add(ProductTable(
                    id=product.id,
                    name=product.name,
                    price=product.price,
                    discount=product.discount,
                    category_id=category_id,
                    in_stock=product.in_stock,
                    featured=product.featured,
                    is_new=product.is_new,
                    rating=product.rating,
                    specifications=product.specifications,
                    created_at=self._clock(),
                ))
                await session.commit()
                return product
        return storage(impl)

    def set_price(self, product_id: str, price: Money) -> LazyCoroResult[bool, Failure]:
        async def impl() -> bool:
            async with self._session() as session:
                result = await session.execute(
                    update(ProductTable).where(ProductTable.id == product_id).values(price=price)
                )
                await session.commit()
                return result.rowcount > 0
        return storage(impl)


__all__ = ("ProductRepo",)
