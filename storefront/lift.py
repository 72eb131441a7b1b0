"""
Lift — helpers for lifting backend and provider calls into LazyCoroResult.

Thin wrappers over combinators.lift with storefront-specific error mapping.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable

from sqlalchemy.exc import IntegrityError

from combinators.lift import catching_async

from storefront._types import LCR
from storefront.errors import Failure, Failures


def storage[T](
    fn: Callable[[], Awaitable[T]],
    on_conflict: str | None = None,
) -> LCR[T, Failure]:
    """
    Backend round-trip. Any exception becomes Failure(STORAGE).

    With on_conflict, a unique-constraint violation becomes Failure(CONFLICT)
    carrying that message instead.

    Example:
        row = await storage(lambda: session.get(OrderTable, order_id))
    """
    if on_conflict is None:
        return catching_async(fn, on_error=Failures.storage)

    def on_error(e: Exception) -> Failure:
        if isinstance(e, IntegrityError):
            return Failures.conflict(on_conflict)
        return Failures.storage(e)

    return catching_async(fn, on_error=on_error)


def provider[T](
    fn: Callable[[], Awaitable[T]],
    message: str,
) -> LCR[T, Failure]:
    """External provider call. Exceptions become Failure(PROVIDER, message)."""
    return catching_async(
        fn,
        on_error=lambda e: Failures.provider(f"{message}: {e}", e),
    )


__all__ = ("storage", "provider")
