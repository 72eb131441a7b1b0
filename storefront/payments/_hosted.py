"""
Hosted redirect checkout (card / mobile money).

The app builds a payment intent, the provider answers with a link, the
customer pays on the provider's page and comes back through the
redirect URL with ``?status=...&tx_ref=...&transaction_id=...``.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

import httpx
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.config import HostedCheckoutSettings
from storefront.errors import Failure, Failures
from storefront.lift import provider
from storefront.models import Order
from storefront.payments._types import Customer


def new_tx_ref(order_id: str) -> str:
    """Unique per attempt; the prefix ties it back to the order."""
    return f"{order_id}-{secrets.token_hex(4)}"


def tx_ref_belongs_to(tx_ref: str, order_id: str) -> bool:
    return tx_ref.startswith(f"{order_id}-")


@dataclass(frozen=True, slots=True)
class HostedCheckoutRequest:
    public_key: str
    tx_ref: str
    amount: Decimal
    currency: str
    payment_options: str
    redirect_url: str
    customer: Customer
    title: str
    description: str
    logo: str = ""
    meta: dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_order(cls, order: Order, customer: Customer, settings: HostedCheckoutSettings, currency: str) -> HostedCheckoutRequest:
        return cls(
            public_key=settings.public_key,
            tx_ref=new_tx_ref(order.id),
            amount=order.total,
            currency=currency,
            payment_options=settings.payment_options,
            redirect_url=settings.redirect_url,
            customer=customer,
            title=settings.title,
            description=f"Payment for order #{order.short_ref}",
            logo=settings.logo,
            meta={"order_id": order.id},
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "public_key": self.public_key,
            "tx_ref": self.tx_ref,
            "amount": str(self.amount),
            "currency": self.currency,
            "payment_options": self.payment_options,
            "redirect_url": self.redirect_url,
            "customer": {
                "email": self.customer.email,
                "phone_number": self.customer.phone_number,
                "name": self.customer.name,
            },
            "customizations": {
                "title": self.title,
                "description": self.description,
                "logo": self.logo,
            },
            "meta": self.meta,
        }


@dataclass(frozen=True, slots=True)
class HostedTransaction:
    """Provider's authoritative view of one transaction."""
    id: str
    tx_ref: str
    status: str
    amount: Decimal
    currency: str

    @property
    def successful(self) -> bool:
        return self.status == "successful"


class HostedCheckoutClient:
    def __init__(self, settings: HostedCheckoutSettings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.secret_key}"}

    def initiate(self, request: HostedCheckoutRequest) -> LazyCoroResult[str, Failure]:
        """POST /v3/payments; Ok(link) to send the customer to."""
        async def call() -> dict[str, Any]:
            response = await self._client.post(
                f"{self._settings.base_url}/v3/payments",
                json=request.to_payload(),
                headers=self._headers(),
            )
            response.raise_for_status()
            return response.json()

        async def impl() -> Result[str, Failure]:
            match await provider(call, "Failed to initiate payment"):
                case Error(e):
                    return Error(e)
                case Ok(body):
                    link = (body.get("data") or {}).get("link")
                    if body.get("status") != "success" or not link:
                        return Error(Failures.provider(body.get("message") or "Failed to initiate payment"))
                    return Ok(link)
        return LazyCoroResult(impl)

    def verify(self, transaction_id: str) -> LazyCoroResult[HostedTransaction, Failure]:
        """GET /v3/transactions/{id}/verify."""
        async def call() -> dict[str, Any]:
            response = await self._client.get(
                f"{self._settings.base_url}/v3/transactions/{transaction_id}/verify",
                headers=self._headers(),
            )
            response.raise_for_status()
            return response.json()

        async def impl() -> Result[HostedTransaction, Failure]:
            match await provider(call, "Payment verification failed"):
                case Error(e):
                    return Error(e)
                case Ok(body):
                    data = body.get("data") or {}
                    if body.get("status") != "success" or not data:
                        return Error(Failures.provider(body.get("message") or "Payment verification failed"))
                    return Ok(HostedTransaction(
                        id=str(data.get("id", transaction_id)),
                        tx_ref=str(data.get("tx_ref", "")),
                        status=str(data.get("status", "")),
                        amount=Decimal(str(data.get("amount", "0"))),
                        currency=str(data.get("currency", "")),
                    ))
        return LazyCoroResult(impl)


# ═══════════════════════════════════════════════════════════════════════════════
# Callback
# ═══════════════════════════════════════════════════════════════════════════════

class CallbackStatus(Enum):
    SUCCESSFUL = "successful"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class HostedCallback:
    status: CallbackStatus
    tx_ref: str | None
    transaction_id: str | None

    @property
    def order_id(self) -> str | None:
        if not self.tx_ref or "-" not in self.tx_ref:
            return None
        return self.tx_ref.rsplit("-", 1)[0]


def parse_callback(query: Mapping[str, str]) -> Result[HostedCallback, Failure]:
    """
    Read the redirect query string.

    A cancelled payment is its own failure kind so checkout can reset
    instead of showing an error.
    """
    try:
        status = CallbackStatus(query.get("status", "").strip().lower())
    except ValueError:
        return Error(Failures.validation("Unknown payment status"))

    match status:
        case CallbackStatus.CANCELLED:
            return Error(Failures.cancelled())
        case CallbackStatus.FAILED:
            return Error(Failures.provider("Payment failed"))

    transaction_id = query.get("transaction_id") or None
    if transaction_id is None:
        return Error(Failures.validation("No transaction ID found"))
    return Ok(HostedCallback(status, query.get("tx_ref") or None, transaction_id))


__all__ = (
    "HostedCheckoutRequest",
    "HostedCheckoutClient",
    "HostedTransaction",
    "HostedCallback",
    "CallbackStatus",
    "parse_callback",
    "new_tx_ref",
    "tx_ref_belongs_to",
)
