"""
Idempotent execution.

Routing by stored record:

    no record ──► claim ──► run operation ──► completed / released
    COMPLETED ──► replay value (input hash must match)
    FAILED    ──► replay error
    PENDING   ──► WAIT: poll until settled │ FAIL: CONFLICT
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from kungfu import Result, Ok, Error, LazyCoroResult

from storefront.idempotency._types import (
    RecordState,
    IdempotencyRecord,
    IdempotencyResult,
    IdempotencyError,
    IdempotencyErrorKind,
)
from storefront.idempotency._store import Store, StoreError
from storefront.idempotency._policy import Policy, OnPending

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IdempotencySpec[T, E]:
    key: str
    operation: Callable[[], LazyCoroResult[T, E]]
    store: Store[T]
    policy: Policy
    input_hash: str | None = None


type Outcome[T, E] = Result[IdempotencyResult[T], IdempotencyError[E]]


def _store_error[T, E](err: StoreError) -> Outcome[T, E]:
    return Error(IdempotencyError(IdempotencyErrorKind.STORE_ERROR, err.message))


def _conflict[T, E](message: str) -> Outcome[T, E]:
    return Error(IdempotencyError(IdempotencyErrorKind.CONFLICT, message))


def _settled[T, E](spec: IdempotencySpec[T, E], record: IdempotencyRecord[T]) -> Outcome[T, E]:
    if spec.input_hash is not None and record.input_hash not in (None, spec.input_hash):
        return Error(IdempotencyError(
            IdempotencyErrorKind.INPUT_MISMATCH,
            f"Key reused with a different payload: {spec.key}",
        ))
    if record.state is RecordState.FAILED:
        return Error(IdempotencyError(IdempotencyErrorKind.EXECUTION, record.error or "Operation failed"))
    return Ok(IdempotencyResult(value=record.value, from_cache=True, key=spec.key))


async def _wait_pending[T, E](spec: IdempotencySpec[T, E]) -> Outcome[T, E]:
    timeout = spec.policy.pending_wait_timeout.total_seconds()
    elapsed = 0.0

    while elapsed < timeout:
        await asyncio.sleep(spec.policy.poll_interval)
        elapsed += spec.policy.poll_interval

        match await spec.store.get(spec.key):
            case Error(err):
                return _store_error(err)
            case Ok(None):
                # Released by a failed attempt; this caller may retry.
                return _conflict("Previous attempt failed, retry")
            case Ok(record) if record.state is not RecordState.PENDING:
                return _settled(spec, record)

    return Error(IdempotencyError(IdempotencyErrorKind.TIMEOUT, "Timeout waiting for pending operation"))


async def _execute_new[T, E](spec: IdempotencySpec[T, E]) -> Outcome[T, E]:
    match await spec.store.set_pending(spec.key, spec.policy.result_ttl, spec.input_hash):
        case Error(err):
            return _store_error(err)
        case Ok(False):
            # Lost the race; replay if the winner already finished.
            match await spec.store.get(spec.key):
                case Ok(record) if record is not None and record.state is not RecordState.PENDING:
                    return _settled(spec, record)
                case _:
                    return _conflict("Request with this key is already in progress")

    try:
        result = await spec.operation()
    except Exception as e:
        logger.exception("Idempotent operation %s raised", spec.key)
        await spec.store.delete(spec.key)
        return Error(IdempotencyError(IdempotencyErrorKind.EXECUTION, str(e)))

    match result:
        case Ok(value):
            match await spec.store.set_completed(spec.key, value, spec.policy.result_ttl):
                case Error(err):
                    return _store_error(err)
            return Ok(IdempotencyResult(value=value, from_cache=False, key=spec.key))
        case Error(err):
            if spec.policy.persist_failed:
                await spec.store.set_failed(spec.key, str(err), spec.policy.result_ttl)
            else:
                await spec.store.delete(spec.key)
            return Error(IdempotencyError(
                IdempotencyErrorKind.EXECUTION,
                "Operation returned Error",
                original_error=err,
            ))


async def run_idempotent[T, E](spec: IdempotencySpec[T, E]) -> Outcome[T, E]:
    """Run spec.operation at most once per key."""
    match await spec.store.get(spec.key):
        case Error(err):
            return _store_error(err)
        case Ok(None):
            return await _execute_new(spec)
        case Ok(record) if record.state is RecordState.PENDING:
            if spec.policy.conflict_strategy is OnPending.FAIL:
                return _conflict("Request with this key is already in progress")
            return await _wait_pending(spec)
        case Ok(record):
            return _settled(spec, record)


__all__ = ("IdempotencySpec", "run_idempotent")
