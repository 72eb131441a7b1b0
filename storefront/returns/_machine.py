"""
Return eligibility and the return-request state machine.

    pending ──► approved ──► completed
       │
       └──────► rejected
"""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType

from storefront.models import Order, OrderStatus, ReturnStatus

RETURN_WINDOW_DAYS = 30

RETURN_TRANSITIONS: MappingProxyType[ReturnStatus, frozenset[ReturnStatus]] = MappingProxyType({
    ReturnStatus.PENDING: frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED}),
    ReturnStatus.APPROVED: frozenset({ReturnStatus.COMPLETED}),
    ReturnStatus.REJECTED: frozenset(),
    ReturnStatus.COMPLETED: frozenset(),
})

DECISIONS = frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED})


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed, rounded down."""
    return (now - moment).days


def can_return(order: Order, now: datetime, window_days: int = RETURN_WINDOW_DAYS) -> bool:
    return order.status is OrderStatus.DELIVERED and days_since(order.created_at, now) <= window_days


def can_transition(src: ReturnStatus, dst: ReturnStatus) -> bool:
    return dst in RETURN_TRANSITIONS[src]


__all__ = (
    "RETURN_WINDOW_DAYS",
    "RETURN_TRANSITIONS",
    "DECISIONS",
    "days_since",
    "can_return",
    "can_transition",
)
