"""
Composition root.

    store = await Storefront.open(Settings.from_env())
    try:
        order = await store.orders.create_order(identity, command)
    finally:
        await store.close()

Every collaborator with an outside dependency (HTTP client, card
processor, exchange rates, chain RPC, clock) can be swapped at open().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from collections.abc import Mapping

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from storefront import payments as P
from storefront._types import Clock, utcnow
from storefront.assistant import Assistant
from storefront.backend import Backend
from storefront.config import Settings
from storefront.coupons import CouponService
from storefront.db import create_database
from storefront.models import PaymentMethod
from storefront.notifications import NotificationService
from storefront.orders import OrderFactory, OrderFinalizer, OrderQueries, OrderStatusMachine
from storefront.returns import ReturnService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Storefront:
    settings: Settings
    backend: Backend
    notifications: NotificationService
    coupons: CouponService
    orders: OrderFactory
    finalizer: OrderFinalizer
    status: OrderStatusMachine
    queries: OrderQueries
    payments: P.PaymentDispatcher
    returns: ReturnService
    assistant: Assistant
    http: httpx.AsyncClient
    engine: AsyncEngine

    @classmethod
    async def open(
        cls,
        settings: Settings,
        *,
        http: httpx.AsyncClient | None = None,
        cards: P.CardProvider | None = None,
        rates: P.ExchangeRateProvider | None = None,
        verifiers: Mapping[PaymentMethod, P.PaymentVerifier] | None = None,
        clock: Clock = utcnow,
    ) -> Storefront:
        session_factory, engine = await create_database(settings.database_url)
        http = http if http is not None else httpx.AsyncClient(timeout=30.0)
        backend = Backend(session_factory, clock)

        if rates is None:
            rates = P.HttpExchangeRates(settings.exchange_rate_url, http) if settings.exchange_rate_url else P.StaticRates()
        if cards is None and settings.test_mode:
            cards = P.SandboxCardProvider()

        hosted = P.HostedCheckoutClient(settings.hosted, http)
        if verifiers is None:
            verifiers = _default_verifiers(settings, hosted, http, rates, cards)

        notifications = NotificationService(backend, clock)
        coupons = CouponService(backend, settings.free_shipping_credit, clock)
        logger.info("Storefront opened on %s (test mode: %s)", settings.database_url, settings.test_mode)
        return cls(
            settings=settings,
            backend=backend,
            notifications=notifications,
            coupons=coupons,
            orders=OrderFactory(backend, coupons, notifications, settings, clock),
            finalizer=OrderFinalizer(backend, notifications, verifiers),
            status=OrderStatusMachine(backend, notifications),
            queries=OrderQueries(backend),
            payments=P.PaymentDispatcher(settings, hosted, rates, cards, clock),
            returns=ReturnService(backend, notifications, settings.return_window_days, clock),
            assistant=Assistant(settings.assistant, http),
            http=http,
            engine=engine,
        )

    async def close(self) -> None:
        await self.http.aclose()
        await self.engine.dispose()


def _default_verifiers(
    settings: Settings,
    hosted: P.HostedCheckoutClient,
    http: httpx.AsyncClient,
    rates: P.ExchangeRateProvider,
    cards: P.CardProvider | None,
) -> dict[PaymentMethod, P.PaymentVerifier]:
    hosted_verifier = P.HostedVerifier(hosted, settings.currency)
    verifiers: dict[PaymentMethod, P.PaymentVerifier] = {
        PaymentMethod.CARD: hosted_verifier,
        PaymentMethod.MOBILE_MONEY: hosted_verifier,
    }
    if settings.wallet.rpc_url:
        chain = P.ChainClient(settings.wallet.rpc_url, http)
        verifiers[PaymentMethod.CRYPTO] = P.ChainVerifier(chain, settings.wallet, rates, settings.currency)
    if cards is not None:
        verifiers[PaymentMethod.TEST_CARD] = P.SandboxVerifier(cards)
    return verifiers


__all__ = ("Storefront",)
