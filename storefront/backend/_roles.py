"""
User roles.
"""

from __future__ import annotations

from kungfu import LazyCoroResult
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from storefront.db import SessionFactory, UserRoleTable
from storefront.errors import Failure
from storefront.lift import storage

ADMIN = "admin"


class RoleRepo:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    def has_role(self, user_id: str, role: str) -> LazyCoroResult[bool, Failure]:
        async def impl() -> bool:
            async with self._session() as session:
                found = await session.scalar(
                    select(UserRoleTable.id).where(UserRoleTable.user_id == user_id, UserRoleTable.role == role)
                )
                return found is not None
        return storage(impl)

    def grant(self, user_id: str, role: str) -> LazyCoroResult[None, Failure]:
        async def impl() -> None:
            async with self._session() as session:
                await session.execute(
                    sqlite_insert(UserRoleTable)
                    .values(user_id=user_id, role=role)
                    .on_conflict_do_nothing(index_elements=["user_id", "role"])
                )
                await session.commit()
        return storage(impl)


__all__ = ("RoleRepo", "ADMIN")
