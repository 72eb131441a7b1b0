"""
Server-side payment verification, one verifier per payment method.

Finalization only proceeds on Ok; the customer's word that a payment
succeeded is never enough.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from kungfu import Result, Ok, Error

from storefront.config import WalletSettings
from storefront.errors import Failure, Failures
from storefront.models import Order
from storefront.payments._direct import CardProvider
from storefront.payments._hosted import HostedCheckoutClient, tx_ref_belongs_to
from storefront.payments._rates import ExchangeRateProvider, quote_wei
from storefront.payments._wallet import ChainClient, order_memo


class PaymentVerifier(Protocol):
    async def verify(self, order: Order, reference: str) -> Result[str, Failure]:
        """Ok(reference to store on the order) once the payment is confirmed."""
        ...


def _unverified(reason: str) -> Result[str, Failure]:
    return Error(Failures.provider(f"Payment could not be verified: {reason}"))


class HostedVerifier:
    def __init__(self, client: HostedCheckoutClient, currency: str) -> None:
        self._client = client
        self._currency = currency

    async def verify(self, order: Order, reference: str) -> Result[str, Failure]:
        match await self._client.verify(reference):
            case Error(e):
                return Error(e)
            case Ok(tx):
                pass

        if not tx.successful:
            return _unverified(f"status is {tx.status or 'unknown'}")
        if not tx_ref_belongs_to(tx.tx_ref, order.id):
            return _unverified("transaction belongs to another order")
        if tx.currency.upper() != self._currency.upper():
            return _unverified(f"paid in {tx.currency}, expected {self._currency}")
        if tx.amount < order.total:
            return _unverified(f"paid {tx.amount}, expected {order.total}")
        return Ok(tx.id)


class ChainVerifier:
    def __init__(
        self,
        chain: ChainClient,
        wallet: WalletSettings,
        rates: ExchangeRateProvider,
        currency: str,
    ) -> None:
        self._chain = chain
        self._wallet = wallet
        self._rates = rates
        self._currency = currency

    async def verify(self, order: Order, reference: str) -> Result[str, Failure]:
        match await self._chain.transfer(reference):
            case Error(e):
                return Error(e)
            case Ok(None):
                return _unverified("transaction not found")
            case Ok(transfer):
                pass

        if not transfer.succeeded:
            return _unverified("transaction is not confirmed")
        if transfer.to != self._wallet.receiving_address.lower():
            return _unverified("transaction was sent to another address")
        if transfer.data != order_memo(order.id):
            return _unverified("transaction is not tagged with this order")

        match await quote_wei(self._rates, order.total, self._currency, self._wallet.currency):
            case Error(e):
                return Error(e)
            case Ok(expected):
                pass

        minimum = int(Decimal(expected) * (Decimal(1) - self._wallet.slippage))
        if transfer.value_wei < minimum:
            return _unverified(f"received {transfer.value_wei} wei, expected {expected}")
        return Ok(transfer.hash)


class SandboxVerifier:
    def __init__(self, cards: CardProvider) -> None:
        self._cards = cards

    async def verify(self, order: Order, reference: str) -> Result[str, Failure]:
        match await self._cards.lookup(reference):
            case Error(e):
                return Error(e)
            case Ok(None):
                return _unverified("charge not found")
            case Ok(charge) if charge.reference != order.id:
                return _unverified("charge belongs to another order")
            case Ok(charge) if charge.amount < order.total:
                return _unverified(f"charged {charge.amount}, expected {order.total}")
            case Ok(charge):
                return Ok(charge.id)


__all__ = ("PaymentVerifier", "HostedVerifier", "ChainVerifier", "SandboxVerifier")
