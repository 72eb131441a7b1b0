"""
Orders and order items.

No method spans more than one logical write; callers compose them with
storefront.saga when a use case needs several.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kungfu import LazyCoroResult
from sqlalchemy import delete, func, select, update

from storefront._types import ZERO, Clock, Money, money, utcnow
from storefront.db import OrderItemTable, OrderTable, SessionFactory
from storefront.errors import Failure
from storefront.lift import storage
from storefront.models import Order, OrderItem, OrderStatus, Page, PaymentMethod
from storefront.backend._rows import item_from_row, order_from_row, paged

REFERENCE_TAKEN = "Payment reference is already used by another order"


@dataclass(frozen=True, slots=True)
class OrderStats:
    total_revenue: Money
    total_orders: int
    by_status: dict[str, int]
    sales_by_month: dict[str, Money]
    recent_orders: tuple[Order, ...]


class OrderRepo:
    def __init__(self, session_factory: SessionFactory, clock: Clock = utcnow) -> None:
        self._session = session_factory
        self._clock = clock

    # ─── writes ───────────────────────────────────────────────────────────────

    def insert(self, order: Order, idempotency_key: str | None = None) -> LazyCoroResult[Order, Failure]:
        """Insert the order row only; items go through insert_items."""
        async def impl() -> Order:
            async with self._session() as session:
                session.add(OrderTable(
                    id=order.id,
                    user_id=order.user_id,
                    shipping_address=order.shipping_address.to_dict(),
                    subtotal=order.subtotal,
                    discount_amount=order.discount_amount,
                    total=order.total,
                    status=order.status.value,
                    payment_method=order.payment_method.value if order.payment_method else None,
                    payment_reference=order.payment_reference,
                    tracking_number=order.tracking_number,
                    coupon_code=order.coupon_code,
                    notes=order.notes,
                    idempotency_key=idempotency_key,
                    estimated_delivery=order.estimated_delivery,
                    created_at=order.created_at,
                    updated_at=order.updated_at,
                ))
                await session.commit()
                return order
        return storage(impl)

    def insert_items(self, order_id: str, items: Sequence[OrderItem]) -> LazyCoroResult[tuple[OrderItem, ...], Failure]:
        async def impl() -> tuple[OrderItem, ...]:
            async with self._session() as session:
                session.add_all(
                    OrderItemTable(
                        id=item.id,
                        order_id=order_id,
                        product_id=item.product_id,
                        quantity=item.quantity,
                        price=item.price,
                    )
                    for item in items
                )
                await session.commit()
                return tuple(items)
        return storage(impl)

    def delete(self, order_id: str) -> LazyCoroResult[None, Failure]:
        """Compensation only. Orders are never deleted once placed."""
        async def impl() -> None:
            async with self._session() as session:
                await session.execute(delete(OrderItemTable).where(OrderItemTable.order_id == order_id))
                await session.execute(delete(OrderTable).where(OrderTable.id == order_id))
                await session.commit()
        return storage(impl)

    def transition(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        status: OrderStatus,
        **fields: Any,
    ) -> LazyCoroResult[bool, Failure]:
        """
        Conditional update: applies only while the row is still in `expected`.

        Returns False when another writer moved the order first.
        """
        values = {key: getattr(value, "value", value) for key, value in fields.items()}

        async def impl() -> bool:
            async with self._session() as session:
                result = await session.execute(
                    update(OrderTable)
                    .where(OrderTable.id == order_id, OrderTable.status == expected.value)
                    .values(status=status.value, updated_at=self._clock(), **values)
                )
                await session.commit()
                return result.rowcount > 0
        return storage(impl, on_conflict=REFERENCE_TAKEN)

    # ─── reads ────────────────────────────────────────────────────────────────

    def get(self, order_id: str) -> LazyCoroResult[Order | None, Failure]:
        async def impl() -> Order | None:
            async with self._session() as session:
                row = await session.get(OrderTable, order_id)
                if row is None:
                    return None
                items = await session.scalars(
                    select(OrderItemTable).where(OrderItemTable.order_id == order_id)
                )
                return order_from_row(row, tuple(item_from_row(i) for i in items))
        return storage(impl)

    def find_by_payment(self, method: PaymentMethod, reference: str) -> LazyCoroResult[Order | None, Failure]:
        """The order a payment reference settled, if any."""
        async def impl() -> Order | None:
            async with self._session() as session:
                row = await session.scalar(
                    select(OrderTable).where(
                        OrderTable.payment_method == method.value,
                        OrderTable.payment_reference == reference,
                    )
                )
                return order_from_row(row) if row is not None else None
        return storage(impl)

    def list_for_user(self, user_id: str, page: int, limit: int) -> LazyCoroResult[Page[Order], Failure]:
        return self._list(page, limit, OrderTable.user_id == user_id)

    def list_all(self, page: int, limit: int, status: OrderStatus | None = None) -> LazyCoroResult[Page[Order], Failure]:
        if status is None:
            return self._list(page, limit)
        return self._list(page, limit, OrderTable.status == status.value)

    def _list(self, page: int, limit: int, *where: Any) -> LazyCoroResult[Page[Order], Failure]:
        async def impl() -> Page[Order]:
            async with self._session() as session:
                stmt = select(OrderTable).where(*where).order_by(OrderTable.created_at.desc())
                rows, count = await paged(session, stmt, page, limit)
                items_by_order: dict[str, list[OrderItem]] = {row.id: [] for row in rows}
                if rows:
                    for item in await session.scalars(
                        select(OrderItemTable).where(OrderItemTable.order_id.in_(items_by_order))
                    ):
                        items_by_order[item.order_id].append(item_from_row(item))
                orders = tuple(order_from_row(row, tuple(items_by_order[row.id])) for row in rows)
                return Page(items=orders, count=count, page=page, limit=limit)
        return storage(impl)

    def stats(self, recent: int = 5) -> LazyCoroResult[OrderStats, Failure]:
        """Dashboard figures. Cancelled orders do not count towards revenue."""
        async def impl() -> OrderStats:
            async with self._session() as session:
                by_status = {
                    status: int(count)
                    for status, count in await session.execute(
                        select(OrderTable.status, func.count()).group_by(OrderTable.status)
                    )
                }
                rows = await session.execute(
                    select(OrderTable.created_at, OrderTable.total).where(
                        OrderTable.status != OrderStatus.CANCELLED.value
                    )
                )
                revenue = ZERO
                by_month: dict[str, Money] = {}
                for created_at, total in rows:
                    revenue += total
                    month = _month_key(created_at)
                    by_month[month] = money(by_month.get(month, ZERO) + total)
                latest = await session.scalars(
                    select(OrderTable).order_by(OrderTable.created_at.desc()).limit(recent)
                )
                return OrderStats(
                    total_revenue=money(revenue),
                    total_orders=sum(by_status.values()),
                    by_status=by_status,
                    sales_by_month=dict(sorted(by_month.items())),
                    recent_orders=tuple(order_from_row(row) for row in latest),
                )
        return storage(impl)


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


__all__ = ("OrderRepo", "OrderStats", "REFERENCE_TAKEN")
