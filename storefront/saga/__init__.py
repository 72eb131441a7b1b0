"""
Saga — multi-step writes with compensation.

    from storefront import saga as S

    saga = S.step("a", action, undo).then(lambda v: S.step("b", action2(v), undo2))
    result = await S.run(saga)
"""

from __future__ import annotations

from storefront.saga._types import (
    Compensator,
    CompensationFailed,
    SagaStep,
    SagaResult,
    SagaError,
    SagaExpr,
    Then,
)
from storefront.saga._step import step, undo, sequence
from storefront.saga._run import run

__all__ = (
    "Compensator",
    "CompensationFailed",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "SagaExpr",
    "Then",
    "step",
    "undo",
    "sequence",
    "run",
)
