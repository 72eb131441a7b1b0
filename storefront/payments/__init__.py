"""
Payments — dispatch to a payment path, verify before finalizing.

    from storefront import payments as P

    result = await dispatcher.dispatch(order, PaymentMethod.CARD, P.HostedPayment(customer))
    if result.redirect_url:
        ...  # send the customer to the provider
"""

from storefront.payments._types import (
    TransactionResult,
    Customer,
    HostedPayment,
    WalletPayment,
    CardDetails,
    CardPayment,
    PaymentRequest,
)
from storefront.payments._validation import (
    validate_card_number,
    validate_card_expiry,
    validate_cvc,
    validate_mobile_number,
    check_card,
    check_mobile_number,
)
from storefront.payments._rates import (
    ExchangeRateProvider,
    StaticRates,
    HttpExchangeRates,
    DEFAULT_RATES,
    WEI_PER_ETH,
    quote_wei,
    to_wei,
    wei_hex,
)
from storefront.payments._hosted import (
    HostedCheckoutRequest,
    HostedCheckoutClient,
    HostedTransaction,
    HostedCallback,
    CallbackStatus,
    parse_callback,
    tx_ref_belongs_to,
)
from storefront.payments._wallet import (
    WalletProvider,
    WalletError,
    WalletSession,
    USER_REJECTED,
    network_name,
    order_memo,
    ChainClient,
    ChainTransfer,
)
from storefront.payments._direct import CardProvider, SandboxCardProvider, Charge, DECLINED_CARDS
from storefront.payments._verify import PaymentVerifier, HostedVerifier, ChainVerifier, SandboxVerifier
from storefront.payments._dispatcher import PaymentDispatcher, TransferQuote

__all__ = (
    "TransactionResult",
    "Customer",
    "HostedPayment",
    "WalletPayment",
    "CardDetails",
    "CardPayment",
    "PaymentRequest",
    "validate_card_number",
    "validate_card_expiry",
    "validate_cvc",
    "validate_mobile_number",
    "check_card",
    "check_mobile_number",
    "ExchangeRateProvider",
    "StaticRates",
    "HttpExchangeRates",
    "DEFAULT_RATES",
    "WEI_PER_ETH",
    "quote_wei",
    "to_wei",
    "wei_hex",
    "HostedCheckoutRequest",
    "HostedCheckoutClient",
    "HostedTransaction",
    "HostedCallback",
    "CallbackStatus",
    "parse_callback",
    "tx_ref_belongs_to",
    "WalletProvider",
    "WalletError",
    "WalletSession",
    "USER_REJECTED",
    "network_name",
    "order_memo",
    "ChainClient",
    "ChainTransfer",
    "CardProvider",
    "SandboxCardProvider",
    "Charge",
    "DECLINED_CARDS",
    "PaymentVerifier",
    "HostedVerifier",
    "ChainVerifier",
    "SandboxVerifier",
    "PaymentDispatcher",
    "TransferQuote",
)
