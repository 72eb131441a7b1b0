"""
Payment records shared by every path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from storefront.errors import Failure, FailureKind

if TYPE_CHECKING:
    from storefront.payments._wallet import WalletSession


@dataclass(frozen=True, slots=True)
class TransactionResult:
    """
    Uniform outcome of a dispatch.

    order_reference is always the order id. redirect_url is set for the
    hosted path, where success means "hand-off ready", not "paid".

    transaction_id is whatever the path can name at dispatch time: the
    charge id for the sandbox card, the tx hash for a wallet transfer, and
    our own tx_ref for hosted checkout. The hosted provider assigns its
    transaction id only after payment; it comes back on the redirect.
    """
    success: bool
    order_reference: str
    transaction_id: str | None = None
    error: str | None = None
    redirect_url: str | None = None
    cancelled: bool = False

    @classmethod
    def failed(cls, order_reference: str, failure: Failure) -> TransactionResult:
        return cls(
            success=False,
            order_reference=order_reference,
            error=failure.message,
            cancelled=failure.kind is FailureKind.CANCELLED,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Requests, one per path
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Customer:
    email: str
    name: str
    phone_number: str = ""


@dataclass(frozen=True, slots=True)
class HostedPayment:
    customer: Customer
    mobile_number: str | None = None


@dataclass(frozen=True, slots=True)
class WalletPayment:
    session: WalletSession | None


@dataclass(frozen=True, slots=True)
class CardDetails:
    number: str
    expiry: str  # MM/YY
    cvc: str

    def __repr__(self) -> str:
        return f"CardDetails(number='****{self.number.replace(' ', '')[-4:]}')"


@dataclass(frozen=True, slots=True)
class CardPayment:
    card: CardDetails


type PaymentRequest = HostedPayment | WalletPayment | CardPayment


__all__ = (
    "TransactionResult",
    "Customer",
    "HostedPayment",
    "WalletPayment",
    "CardDetails",
    "CardPayment",
    "PaymentRequest",
)
