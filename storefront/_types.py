"""
Core types for storefront.

Re-exports from kungfu/combinators + money and clock aliases.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# Re-export from combinators
from combinators import LCR

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Amounts in the store currency. Never float."""

ZERO: Money = Decimal("0")
CENT: Money = Decimal("0.01")


def money(value: Decimal | int | str) -> Money:
    """Quantize to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]
"""Returns naive UTC now. Injected so time-window rules are testable."""


def utcnow() -> datetime:
    # SQLite drops tzinfo, so everything is stored and compared as naive UTC.
    return datetime.now(UTC).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Re-exports from combinators
    "LCR",
    # Money
    "Money",
    "ZERO",
    "CENT",
    "money",
    # Clock
    "Clock",
    "utcnow",
)
