"""
Idempotency store — storage protocol and in-memory implementation.

All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from kungfu import Result, Ok, Error

from storefront._types import Clock, utcnow
from storefront.idempotency._types import RecordState, IdempotencyRecord


@dataclass(frozen=True, slots=True)
class StoreError:
    message: str
    cause: Exception | None = None


class Store[T](Protocol):
    """
    Idempotency store protocol.

    set_pending must be atomic (compare-and-swap): exactly one caller
    gets Ok(True) for a given key.
    """

    async def get(self, key: str) -> Result[IdempotencyRecord[T] | None, StoreError]:
        """Ok(None) if not found or expired."""
        ...

    async def set_pending(
        self,
        key: str,
        ttl: timedelta | None,
        input_hash: str | None = None,
    ) -> Result[bool, StoreError]:
        """Ok(True) if claimed, Ok(False) if the key already exists."""
        ...

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, StoreError]:
        ...

    async def set_failed(self, key: str, error: str, ttl: timedelta | None) -> Result[None, StoreError]:
        ...

    async def delete(self, key: str) -> Result[bool, StoreError]:
        """Ok(True) if the record existed."""
        ...


class MemoryStore[T]:
    """
    In-memory idempotency store.

    Single process only: no distributed lock, lost on restart.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._records: dict[str, IdempotencyRecord[T]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live(self, key: str) -> IdempotencyRecord[T] | None:
        record = self._records.get(key)
        if record is not None and record.is_expired(self._clock()):
            del self._records[key]
            return None
        return record

    async def get(self, key: str) -> Result[IdempotencyRecord[T] | None, StoreError]:
        async with self._lock:
            return Ok(self._live(key))

    async def set_pending(
        self,
        key: str,
        ttl: timedelta | None,
        input_hash: str | None = None,
    ) -> Result[bool, StoreError]:
        async with self._lock:
            if self._live(key) is not None:
                return Ok(False)

            now = self._clock()
            self._records[key] = IdempotencyRecord(
                key=key,
                state=RecordState.PENDING,
                value=None,
                error=None,
                created_at=now,
                expires_at=now + ttl if ttl else None,
                input_hash=input_hash,
            )
            return Ok(True)

    async def set_completed(self, key: str, value: T, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, RecordState.COMPLETED, value, None, ttl)

    async def set_failed(self, key: str, error: str, ttl: timedelta | None) -> Result[None, StoreError]:
        return await self._settle(key, RecordState.FAILED, None, error, ttl)

    async def _settle(
        self,
        key: str,
        state: RecordState,
        value: T | None,
        error: str | None,
        ttl: timedelta | None,
    ) -> Result[None, StoreError]:
        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                return Error(StoreError(f"No pending record for key: {key}"))

            now = self._clock()
            self._records[key] = IdempotencyRecord(
                key=key,
                state=state,
                value=value,
                error=error,
                created_at=existing.created_at,
                expires_at=now + ttl if ttl else None,
                input_hash=existing.input_hash,
            )
            return Ok(None)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)


__all__ = ("StoreError", "Store", "MemoryStore")
