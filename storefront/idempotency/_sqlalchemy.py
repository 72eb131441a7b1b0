"""
SQLAlchemy idempotency store over the idempotency_keys table.

The primary key on ``key`` is the uniqueness constraint: INSERT ... ON
CONFLICT DO NOTHING claims it, rowcount tells whether we won.

    store = SQLAlchemyStore(session_factory)
    executor = I.idempotent(place).key(key_fn).store(store).build()
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, cast

from sqlalchemy import delete
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import CursorResult

from kungfu import Result, Ok, Error

from storefront._types import Clock, utcnow
from storefront.db import IdempotencyKeyTable, SessionFactory
from storefront.idempotency._types import IdempotencyRecord, RecordState
from storefront.idempotency._store import StoreError


class IdempotencyStatus:
    """Values of the idempotency_keys.state column."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


_STATES = {
    IdempotencyStatus.PENDING: RecordState.PENDING,
    IdempotencyStatus.COMPLETED: RecordState.COMPLETED,
    IdempotencyStatus.FAILED: RecordState.FAILED,
}


class SQLAlchemyStore:
    """Stores string values (e.g. the created order id)."""

    def __init__(self, session_factory: SessionFactory, clock: Clock = utcnow) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get(self, key: str) -> Result[IdempotencyRecord[str] | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(IdempotencyKeyTable, key)
                if row is None:
                    return Ok(None)
                record = self._to_record(row)
                if record.is_expired(self._clock()):
                    return Ok(None)
                return Ok(record)
        except Exception as e:
            return Error(StoreError(f"Failed to get: {e}", e))

    async def set_pending(
        self,
        key: str,
        ttl: timedelta | None,
        input_hash: str | None = None,
    ) -> Result[bool, StoreError]:
        now = self._clock()
        try:
            async with self._session_factory() as session:
                # An expired record must not block a new claim.
                await session.execute(
                    delete(IdempotencyKeyTable).where(
                        IdempotencyKeyTable.key == key,
                        IdempotencyKeyTable.expires_at.is_not(None),
                        IdempotencyKeyTable.expires_at < now,
                    )
                )
                stmt = (
                    sqlite_insert(IdempotencyKeyTable)
                    .values(
                        key=key,
                        state=IdempotencyStatus.PENDING,
                        input_hash=input_hash,
                        created_at=now,
                        expires_at=now + ttl if ttl else None,
                    )
                    .on_conflict_do_nothing(index_elements=["key"])
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to set pending: {e}", e))

    async def set_completed(self, key: str, value: str, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, IdempotencyStatus.COMPLETED, value, None, ttl)

    async def set_failed(self, key: str, error: str, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, IdempotencyStatus.FAILED, None, error, ttl)

    async def _settle(
        self,
        key: str,
        state: str,
        value: str | None,
        error: str | None,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(IdempotencyKeyTable, key)
                if row is None:
                    return Error(StoreError(f"Record not found: {key}"))

                row.state = state
                row.value = value
                row.error = error
                row.expires_at = self._clock() + ttl if ttl else None
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to settle: {e}", e))

    async def delete(self, key: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(IdempotencyKeyTable, key)
                if row is None:
                    return Ok(False)
                await session.delete(row)
                await session.commit()
                return Ok(True)
        except Exception as e:
            return Error(StoreError(f"Failed to delete: {e}", e))

    @staticmethod
    def _to_record(row: IdempotencyKeyTable) -> IdempotencyRecord[str]:
        return IdempotencyRecord(
            key=row.key,
            state=_STATES.get(row.state, RecordState.PENDING),
            value=row.value,
            error=row.error,
            created_at=row.created_at,
            expires_at=row.expires_at,
            input_hash=row.input_hash,
        )


__all__ = ("IdempotencyStatus", "SQLAlchemyStore")
