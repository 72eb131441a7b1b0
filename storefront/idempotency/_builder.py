"""
Idempotency builder — fluent API over run_idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable

from kungfu import LazyCoroResult, Result

from storefront.idempotency._types import IdempotencyResult, IdempotencyError
from storefront.idempotency._store import Store, MemoryStore
from storefront.idempotency._policy import Policy
from storefront.idempotency._run import IdempotencySpec, run_idempotent

type KeyFn[K] = Callable[[K], str]
type HashFn[K] = Callable[[K], str]


@dataclass(slots=True, frozen=True)
class Idempotent[K, T, E]:
    _operation: Callable[[K], LazyCoroResult[T, E]]
    _key_fn: KeyFn[K] | None
    _hash_fn: HashFn[K] | None
    _store: Store[T] | None
    _policy: Policy

    def key(self, fn: KeyFn[K]) -> Idempotent[K, T, E]:
        return Idempotent(self._operation, fn, self._hash_fn, self._store, self._policy)

    def fingerprint(self, fn: HashFn[K]) -> Idempotent[K, T, E]:
        """Hash the payload so a reused key with different input is rejected."""
        return Idempotent(self._operation, self._key_fn, fn, self._store, self._policy)

    def store(self, s: Store[T]) -> Idempotent[K, T, E]:
        return Idempotent(self._operation, self._key_fn, self._hash_fn, s, self._policy)

    def policy(self, p: Policy) -> Idempotent[K, T, E]:
        return Idempotent(self._operation, self._key_fn, self._hash_fn, self._store, p)

    def build(self) -> IdempotentExecutor[K, T, E]:
        if self._key_fn is None:
            raise ValueError("key() is required")

        return IdempotentExecutor(
            operation=self._operation,
            key_fn=self._key_fn,
            hash_fn=self._hash_fn,
            store=self._store if self._store is not None else MemoryStore(),
            policy=self._policy,
        )


@dataclass(slots=True, frozen=True)
class IdempotentExecutor[K, T, E]:
    operation: Callable[[K], LazyCoroResult[T, E]]
    key_fn: KeyFn[K]
    hash_fn: HashFn[K] | None
    store: Store[T]
    policy: Policy

    def run(self, input_val: K) -> LazyCoroResult[IdempotencyResult[T], IdempotencyError[E]]:
        spec = IdempotencySpec(
            key=self.key_fn(input_val),
            operation=lambda: self.operation(input_val),
            store=self.store,
            policy=self.policy,
            input_hash=self.hash_fn(input_val) if self.hash_fn is not None else None,
        )

        async def execute() -> Result[IdempotencyResult[T], IdempotencyError[E]]:
            return await run_idempotent(spec)

        return LazyCoroResult(execute)


def idempotent[K, T, E](operation: Callable[[K], LazyCoroResult[T, E]]) -> Idempotent[K, T, E]:
    """
    Wrap an operation so each key runs at most once.

    Example:
        executor = (
            I.idempotent(place_order)
            .key(lambda cmd: f"order:{cmd.user_id}:{cmd.idempotency_key}")
            .store(I.MemoryStore())
            .policy(I.Policy().with_ttl(hours=24).with_on_pending(I.FAIL))
            .build()
        )

        result = await executor.run(command)
    """
    return Idempotent(
        _operation=operation,
        _key_fn=None,
        _hash_fn=None,
        _store=None,
        _policy=Policy(),
    )


__all__ = ("Idempotent", "IdempotentExecutor", "idempotent")
