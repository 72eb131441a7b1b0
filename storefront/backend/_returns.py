"""
Return requests.
"""

from __future__ import annotations

from typing import Any

from kungfu import LazyCoroResult
from sqlalchemy import func, select, update

from storefront.db import ReturnRequestTable, SessionFactory
from storefront.errors import Failure
from storefront.lift import storage
from storefront.models import Page, ReturnRequest, ReturnStatus
from storefront.backend._rows import paged, return_from_row


class ReturnRepo:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    def insert(self, request: ReturnRequest) -> LazyCoroResult[ReturnRequest, Failure]:
        async def impl() -> ReturnRequest:
            async with self._session() as session:
                session.add(ReturnRequestTable(
                    id=request.id,
                    order_id=request.order_id,
                    product_id=request.product_id,
                    user_id=request.user_id,
                    quantity=request.quantity,
                    reason=request.reason.value,
                    description=request.description,
                    status=request.status.value,
                    requested_at=request.requested_at,
                ))
                await session.commit()
                return request
        return storage(impl)

    def get(self, return_id: str) -> LazyCoroResult[ReturnRequest | None, Failure]:
        async def impl() -> ReturnRequest | None:
            async with self._session() as session:
                row = await session.get(ReturnRequestTable, return_id)
                return return_from_row(row) if row else None
        return storage(impl)

    def quantity_claimed(self, order_id: str, product_id: str) -> LazyCoroResult[int, Failure]:
        """Units of one order line already covered by requests that were not rejected."""
        async def impl() -> int:
            async with self._session() as session:
                total = await session.scalar(
                    select(func.coalesce(func.sum(ReturnRequestTable.quantity), 0)).where(
                        ReturnRequestTable.order_id == order_id,
                        ReturnRequestTable.product_id == product_id,
                        ReturnRequestTable.status != ReturnStatus.REJECTED.value,
                    )
                )
                return int(total or 0)
        return storage(impl)

    def list_for_user(self, user_id: str, page: int, limit: int) -> LazyCoroResult[Page[ReturnRequest], Failure]:
        return self._list(page, limit, ReturnRequestTable.user_id == user_id)

    def list_all(self, page: int, limit: int, status: ReturnStatus | None = None) -> LazyCoroResult[Page[ReturnRequest], Failure]:
        if status is None:
            return self._list(page, limit)
        return self._list(page, limit, ReturnRequestTable.status == status.value)

    def _list(self, page: int, limit: int, *where: Any) -> LazyCoroResult[Page[ReturnRequest], Failure]:
        async def impl() -> Page[ReturnRequest]:
            async with self._session() as session:
                stmt = select(ReturnRequestTable).where(*where).order_by(ReturnRequestTable.requested_at.desc())
                rows, count = await paged(session, stmt, page, limit)
                return Page(tuple(return_from_row(r) for r in rows), count, page, limit)
        return storage(impl)

    def transition(
        self,
        return_id: str,
        *,
        expected: ReturnStatus,
        status: ReturnStatus,
        **fields: Any,
    ) -> LazyCoroResult[ReturnRequest | None, Failure]:
        """Conditional on the stored status; None if it changed underneath."""
        async def impl() -> ReturnRequest | None:
            async with self._session() as session:
                result = await session.execute(
                    update(ReturnRequestTable)
                    .where(ReturnRequestTable.id == return_id, ReturnRequestTable.status == expected.value)
                    .values(status=status.value, **fields)
                )
                await session.commit()
                if result.rowcount == 0:
                    return None
                row = await session.get(ReturnRequestTable, return_id, populate_existing=True)
                return return_from_row(row) if row else None
        return storage(impl)


__all__ = ("ReturnRepo",)
