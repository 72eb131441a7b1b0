"""
storefront — checkout and order-state core for an online store.

    from storefront import saga as S          # Compensated multi-step writes
    from storefront import idempotency as I   # At-most-once per key
    from storefront.container import Storefront
"""

from storefront import saga
from storefront import idempotency
from storefront import lift
from storefront._types import (
    LCR,
    Money,
    ZERO,
    money,
    Clock,
    utcnow,
)
from storefront.errors import Failure, FailureKind, Failures

__version__ = "0.1.0"

__all__ = (
    "saga",
    "idempotency",
    "lift",
    "LCR",
    "Money",
    "ZERO",
    "money",
    "Clock",
    "utcnow",
    "Failure",
    "FailureKind",
    "Failures",
)
