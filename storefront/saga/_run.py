"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from kungfu import Result, Ok, Error

from storefront.saga._types import (
    SagaStep,
    SagaResult,
    SagaError,
    SagaExpr,
    Then,
    Compensator,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Trace — what ran so far
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator = tuple[str, object, Compensator[object]]


@dataclass(slots=True)
class _Trace:
    compensators: list[RecordedCompensator] = field(default_factory=list)
    steps: int = 0


async def _execute[T, E](
    expr: SagaExpr[T, E],
    trace: _Trace,
) -> Result[T, tuple[str, E]]:
    match expr:
        case SagaStep(name=name, action=action, compensate=compensate):
            trace.steps += 1
            match await action:
                case Ok(value):
                    if compensate is not None:
                        trace.compensators.append((name, value, compensate))
                    return Ok(value)
                case Error(e):
                    return Error((name, e))
        case Then(inner=inner, f=f):
            match await _execute(inner, trace):
                case Ok(value):
                    return await _execute(f(value), trace)
                case Error(failed):
                    return Error(failed)


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators() — Rollback
# ═══════════════════════════════════════════════════════════════════════════════

async def run_compensators(compensators: list[RecordedCompensator]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
            logger.info("Compensated saga step %r", name)
        except Exception:
            comp_failed += 1
            logger.exception("Compensation for saga step %r failed", name)

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run() — Execute Saga
# ═══════════════════════════════════════════════════════════════════════════════

async def run[T, E](saga: SagaExpr[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute a step or chain with automatic rollback on failure.

    Example:
        match await S.run(place):
            case Ok(r):
                order = r.value
            case Error(e):
                log.warning("failed at %s", e.step_failed)
    """
    trace = _Trace()

    match await _execute(saga, trace):
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=trace.steps,
                compensators_recorded=len(trace.compensators),
            ))

        case Error((step_name, error)):
            logger.warning("Saga failed at step %r, rolling back %d step(s)", step_name, len(trace.compensators))
            comp_run, comp_failed = await run_compensators(trace.compensators)

            return Error(SagaError(
                error=error,
                step_failed=step_name,
                steps_executed=trace.steps,
                compensators_run=comp_run,
                compensators_failed=comp_failed,
                rollback_complete=comp_failed == 0,
            ))


__all__ = ("run", "run_compensators")
