"""
Idempotency — run an operation at most once per key.

    from storefront import idempotency as I

    executor = (
        I.idempotent(place_order)
        .key(lambda cmd: f"order:{cmd.user_id}:{cmd.idempotency_key}")
        .fingerprint(order_fingerprint)
        .store(I.SQLAlchemyStore(session_factory))
        .policy(I.Policy().with_ttl(hours=24).with_on_pending(I.FAIL))
        .build()
    )
    result = await executor.run(command)
"""

from storefront.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)
from storefront.idempotency._store import Store, StoreError, MemoryStore
from storefront.idempotency._policy import Policy, OnPending, WAIT, FAIL
from storefront.idempotency._run import IdempotencySpec, run_idempotent
from storefront.idempotency._builder import Idempotent, IdempotentExecutor, idempotent
from storefront.idempotency._sqlalchemy import SQLAlchemyStore, IdempotencyStatus

__all__ = (
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
    "Store",
    "StoreError",
    "MemoryStore",
    "Policy",
    "OnPending",
    "WAIT",
    "FAIL",
    "IdempotencySpec",
    "run_idempotent",
    "Idempotent",
    "IdempotentExecutor",
    "idempotent",
    "SQLAlchemyStore",
    "IdempotencyStatus",
)
