"""
Notifications. Only the read flag is ever updated.
"""

from __future__ import annotations

from kungfu import LazyCoroResult
from sqlalchemy import delete, func, select, update

from storefront.db import NotificationTable, SessionFactory
from storefront.errors import Failure
from storefront.lift import storage
from storefront.models import Notification, Page
from storefront.backend._rows import notification_from_row, paged


class NotificationRepo:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    def insert(self, notification: Notification) -> LazyCoroResult[Notification, Failure]:
        async def impl() -> Notification:
            async with self._session() as session:
                session.add(NotificationTable(
                    id=notification.id,
                    user_id=notification.user_id,
                    type=notification.type.value,
                    title=notification.title,
                    message=notification.message,
                    data=notification.data,
                    is_read=notification.is_read,
                    created_at=notification.created_at,
                ))
                await session.commit()
                return notification
        return storage(impl)

    def list_for_user(
        self,
        user_id: str,
        page: int,
        limit: int,
        include_read: bool = True,
    ) -> LazyCoroResult[tuple[Page[Notification], int], Failure]:
        """Returns (page, unread count)."""
        async def impl() -> tuple[Page[Notification], int]:
            async with self._session() as session:
                stmt = (
                    select(NotificationTable)
                    .where(NotificationTable.user_id == user_id)
                    .order_by(NotificationTable.created_at.desc())
                )
                if not include_read:
                    stmt = stmt.where(NotificationTable.is_read.is_(False))
                rows, count = await paged(session, stmt, page, limit)
                unread = await session.scalar(
                    select(func.count()).where(
                        NotificationTable.user_id == user_id,
                        NotificationTable.is_read.is_(False),
                    )
                )
                page_ = Page(tuple(notification_from_row(r) for r in rows), count, page, limit)
                return page_, int(unread or 0)
        return storage(impl)

    def mark_read(self, notification_id: str, user_id: str) -> LazyCoroResult[bool, Failure]:
        async def impl() -> bool:
            async with self._session() as session:
                result = await session.execute(
                    update(NotificationTable)
                    .where(NotificationTable.id == notification_id, NotificationTable.user_id == user_id)
                    .values(is_read=True)
                )
                await session.commit()
                return result.rowcount > 0
        return storage(impl)

    def mark_all_read(self, user_id: str) -> LazyCoroResult[int, Failure]:
        async def impl() -> int:
            async with self._session() as session:
                result = await session.execute(
                    update(NotificationTable)
                    .where(NotificationTable.user_id == user_id, NotificationTable.is_read.is_(False))
                    .values(is_read=True)
                )
                await session.commit()
                return result.rowcount
        return storage(impl)

    def delete(self, notification_id: str, user_id: str) -> LazyCoroResult[bool, Failure]:
        async def impl() -> bool:
            async with self._session() as session:
                result = await session.execute(
                    delete(NotificationTable).where(
                        NotificationTable.id == notification_id,
                        NotificationTable.user_id == user_id,
                    )
                )
                await session.commit()
                return result.rowcount > 0
        return storage(impl)


__all__ = ("NotificationRepo",)
