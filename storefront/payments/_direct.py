"""
Direct card capture. Test mode only; production card data goes through
the hosted checkout and never reaches this process.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from kungfu import Result, Ok, Error

from storefront.errors import Failure, Failures
from storefront.payments._types import CardDetails

# Card numbers the sandbox declines.
DECLINED_CARDS = frozenset({"4000000000000002"})


@dataclass(frozen=True, slots=True)
class Charge:
    id: str
    reference: str
    amount: Decimal
    currency: str
    last4: str


class CardProvider(Protocol):
    async def charge(self, card: CardDetails, amount: Decimal, currency: str, reference: str) -> Result[Charge, Failure]: ...

    async def lookup(self, charge_id: str) -> Result[Charge | None, Failure]: ...


class SandboxCardProvider:
    """In-process card processor with a declined-card list."""

    def __init__(self) -> None:
        self._charges: dict[str, Charge] = {}

    async def charge(self, card: CardDetails, amount: Decimal, currency: str, reference: str) -> Result[Charge, Failure]:
        number = "".join(card.number.split())
        if number in DECLINED_CARDS:
            return Error(Failures.provider("Card was declined"))
        charge = Charge(
            id=f"TR-{uuid.uuid4().hex[:16]}",
            reference=reference,
            amount=amount,
            currency=currency,
            last4=number[-4:],
        )
        self._charges[charge.id] = charge
        return Ok(charge)

    async def lookup(self, charge_id: str) -> Result[Charge | None, Failure]:
        return Ok(self._charges.get(charge_id))


__all__ = ("CardProvider", "SandboxCardProvider", "Charge", "DECLINED_CARDS")
