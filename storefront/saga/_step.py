"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from kungfu import LazyCoroResult, Error

from storefront.saga._types import SagaStep, SagaExpr, Compensator, CompensationFailed


def step[T, E](
    name: str,
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
    Create a compensated saga step.

    Example:
        from storefront import saga as S

        place = S.step(
            "insert_order",
            backend.orders.insert(draft),
            compensate=S.undo(lambda order: backend.orders.delete(order.id)),
        ).then(lambda order: S.step(
            "insert_items",
            backend.orders.insert_items(order.id, lines),
        ))
    """
    return SagaStep(name=name, action=action, compensate=compensate)


def undo[T, E](make: Callable[[T], LazyCoroResult[object, E]]) -> Compensator[T]:
    """
    Compensator from a Result-returning undo action.

    An Error result raises CompensationFailed, so the run counts it as a
    failed compensation instead of silently dropping it.
    """
    async def compensate(value: T) -> None:
        match await make(value):
            case Error(e):
                raise CompensationFailed(e)
    return compensate


def sequence[E](steps: Sequence[SagaStep[object, E]]) -> SagaExpr[object, E]:
    """Chain independent steps; each runs after the previous one succeeded."""
    if not steps:
        raise ValueError("sequence() needs at least one step")

    expr: SagaExpr[object, E] = steps[0]
    for next_step in steps[1:]:
        expr = expr.then(lambda _, s=next_step: s)
    return expr


__all__ = ("step", "undo", "sequence")
