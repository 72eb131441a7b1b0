"""
Payment dispatcher — routes a pending order to its payment path.

    ┌ CARD / MOBILE_MONEY ─► hosted checkout link (redirect)
    ├ CRYPTO ──────────────► wallet-signed transfer (tx hash)
    └ TEST_CARD ───────────► sandbox card charge (test mode only)

Dispatch never writes to the order. Finalization happens later, after
the provider confirms the payment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kungfu import Result, Ok, Error

from storefront._types import Clock, utcnow
from storefront.config import Settings
from storefront.errors import Failure, Failures
from storefront.models import Order, OrderStatus, PaymentMethod
from storefront.payments._direct import CardProvider
from storefront.payments._hosted import HostedCheckoutClient, HostedCheckoutRequest
from storefront.payments._rates import ExchangeRateProvider, quote_wei, wei_hex
from storefront.payments._types import (
    CardPayment,
    HostedPayment,
    PaymentRequest,
    TransactionResult,
    WalletPayment,
)
from storefront.payments._validation import check_card, check_mobile_number
from storefront.payments._wallet import order_memo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransferQuote:
    to: str
    amount_wei: int
    currency: str
    data: str

    @property
    def value_hex(self) -> str:
        return wei_hex(self.amount_wei)


class PaymentDispatcher:
    def __init__(
        self,
        settings: Settings,
        hosted: HostedCheckoutClient,
        rates: ExchangeRateProvider,
        cards: CardProvider | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._settings = settings
        self._hosted = hosted
        self._rates = rates
        self._cards = cards
        self._clock = clock

    async def dispatch(self, order: Order, method: PaymentMethod, request: PaymentRequest) -> TransactionResult:
        if order.status is not OrderStatus.PENDING:
            return TransactionResult.failed(order.id, Failures.conflict("Order is not awaiting payment"))

        match await self._route(order, method, request):
            case Ok(result):
                return result
            case Error(e):
                logger.info("Payment for order %s via %s not completed: %s", order.id, method.value, e.message)
                return TransactionResult.failed(order.id, e)

    async def quote_transfer(self, order: Order) -> Result[TransferQuote, Failure]:
        """What the wallet should send for this order: receiving address, amount in wei, order memo."""
        wallet = self._settings.wallet
        match await quote_wei(self._rates, order.total, self._settings.currency, wallet.currency):
            case Error(e):
                return Error(e)
            case Ok(wei):
                return Ok(TransferQuote(
                    to=wallet.receiving_address,
                    amount_wei=wei,
                    currency=wallet.currency,
                    data=order_memo(order.id),
                ))

    async def _route(self, order: Order, method: PaymentMethod, request: PaymentRequest) -> Result[TransactionResult, Failure]:
        match method, request:
            case (PaymentMethod.CARD | PaymentMethod.MOBILE_MONEY), HostedPayment():
                return await self._redirect(order, method, request)
            case PaymentMethod.CRYPTO, WalletPayment():
                return await self._wallet(order, request)
            case PaymentMethod.TEST_CARD, CardPayment():
                return await self._direct(order, request)
            case _:
                return Error(Failures.validation(f"Payment details do not match method {method.value}"))

    async def _redirect(self, order: Order, method: PaymentMethod, request: HostedPayment) -> Result[TransactionResult, Failure]:
        if method is PaymentMethod.MOBILE_MONEY:
            match check_mobile_number(request.mobile_number):
                case Error(e):
                    return Error(e)

        intent = HostedCheckoutRequest.for_order(order, request.customer, self._settings.hosted, self._settings.currency)
        match await self._hosted.initiate(intent):
            case Error(e):
                return Error(e)
            case Ok(link):
                return Ok(TransactionResult(
                    success=True,
                    order_reference=order.id,
                    transaction_id=intent.tx_ref,
                    redirect_url=link,
                ))

    async def _wallet(self, order: Order, request: WalletPayment) -> Result[TransactionResult, Failure]:
        session = request.session
        if session is None or not session.installed:
            return Error(Failures.provider("Wallet is not installed"))
        if not session.connected:
            return Error(Failures.provider("Wallet is not connected"))

        match await self.quote_transfer(order):
            case Error(e):
                return Error(e)
            case Ok(quote):
                pass

        match await session.send_transfer(quote.to, quote.value_hex, quote.data):
            case Error(e):
                return Error(e)
            case Ok(tx_hash):
                logger.info("Order %s: wallet transfer %s sent (%d wei)", order.id, tx_hash, quote.amount_wei)
                return Ok(TransactionResult(success=True, order_reference=order.id, transaction_id=tx_hash))

    async def _direct(self, order: Order, request: CardPayment) -> Result[TransactionResult, Failure]:
        if not self._settings.test_mode or self._cards is None:
            return Error(Failures.forbidden("Direct card payments are only available in test mode"))

        match check_card(request.card, self._clock()):
            case Error(e):
                return Error(e)

        match await self._cards.charge(request.card, order.total, self._settings.currency, order.id):
            case Error(e):
                return Error(e)
            case Ok(charge):
                return Ok(TransactionResult(success=True, order_reference=order.id, transaction_id=charge.id))


__all__ = ("PaymentDispatcher", "TransferQuote")
