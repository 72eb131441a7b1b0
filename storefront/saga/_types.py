"""
Saga types — named steps, chaining, outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Compensator — Undo Action
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the step's value and undoes it."""

# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep — Single Step with Compensation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single named step: action + compensator.

    When action succeeds, compensator is recorded.
    If a later step fails, recorded compensators run in reverse.
    """

    name: str
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None

    def then[U](self, f: Callable[[T], SagaExpr[U, E]]) -> Then[T, U, E]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E]:
    """Sequential composition. The next step is built from the previous value."""

    inner: SagaExpr[T, E]
    f: Callable[[T], SagaExpr[U, E]]

    def then[V](self, f: Callable[[U], SagaExpr[V, E]]) -> Then[U, V, E]:
        return Then(self, f)


type SagaExpr[T, E] = SagaStep[T, E] | Then[object, T, E]


class CompensationFailed(Exception):
    """Raised by an undo whose Result came back as Error."""

    def __init__(self, error: object) -> None:
        super().__init__(str(error))
        self.error = error

# ═══════════════════════════════════════════════════════════════════════════════
# Result Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Failed saga with rollback status."""

    error: E
    step_failed: str
    steps_executed: int
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


__all__ = (
    "Compensator",
    "CompensationFailed",
    "SagaStep",
    "Then",
    "SagaExpr",
    "SagaResult",
    "SagaError",
)
