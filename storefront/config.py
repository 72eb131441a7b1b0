"""
Settings and logging setup.

    settings = Settings.from_env().with_test_mode(True)
    configure_logging(settings)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from datetime import timedelta
from decimal import Decimal

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./storefront.db"
DEFAULT_HOSTED_URL = "https://api.flutterwave.com"
DEFAULT_REDIRECT_URL = "http://localhost:8000/payments/callback"
DEFAULT_PAYMENT_OPTIONS = "card,mobilemoney,ussd"
DEFAULT_WALLET_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
DEFAULT_ASSISTANT_URL = "https://api.deepseek.com"
DEFAULT_ASSISTANT_MODEL = "deepseek-chat"


def _env(name: str, default: str) -> str:
    return os.getenv(f"STOREFRONT_{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(f"STOREFRONT_{name}")
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class HostedCheckoutSettings:
    base_url: str = DEFAULT_HOSTED_URL
    public_key: str = ""
    secret_key: str = ""
    redirect_url: str = DEFAULT_REDIRECT_URL
    payment_options: str = DEFAULT_PAYMENT_OPTIONS
    title: str = "Storefront"
    logo: str = ""


@dataclass(frozen=True, slots=True)
class WalletSettings:
    receiving_address: str = DEFAULT_WALLET_ADDRESS
    currency: str = "ETH"
    rpc_url: str = ""
    # Accepted shortfall between quoted and received amount (rate drift).
    slippage: Decimal = Decimal("0.02")


@dataclass(frozen=True, slots=True)
class AssistantSettings:
    api_key: str = ""
    base_url: str = DEFAULT_ASSISTANT_URL
    model: str = DEFAULT_ASSISTANT_MODEL
    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Immutable runtime configuration.

    Copy-on-write: every with_* returns a new Settings.
    """
    database_url: str = DEFAULT_DATABASE_URL
    currency: str = "RWF"
    return_window_days: int = 30
    delivery_days: int = 7
    free_shipping_credit: Decimal = Decimal("10.00")
    exchange_rate_url: str = ""
    test_mode: bool = False
    log_level: str = "INFO"
    idempotency_ttl: timedelta = timedelta(hours=24)
    hosted: HostedCheckoutSettings = field(default_factory=HostedCheckoutSettings)
    wallet: WalletSettings = field(default_factory=WalletSettings)
    assistant: AssistantSettings = field(default_factory=AssistantSettings)

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            database_url=_env("DATABASE_URL", DEFAULT_DATABASE_URL),
            currency=_env("CURRENCY", "RWF"),
            return_window_days=int(_env("RETURN_WINDOW_DAYS", "30")),
            delivery_days=int(_env("DELIVERY_DAYS", "7")),
            free_shipping_credit=Decimal(_env("FREE_SHIPPING_CREDIT", "10.00")),
            exchange_rate_url=_env("EXCHANGE_RATE_URL", ""),
            test_mode=_env_bool("TEST_MODE", False),
            log_level=_env("LOG_LEVEL", "INFO"),
            idempotency_ttl=timedelta(seconds=int(_env("IDEMPOTENCY_TTL", "86400"))),
            hosted=HostedCheckoutSettings(
                base_url=_env("HOSTED_BASE_URL", DEFAULT_HOSTED_URL),
                public_key=_env("HOSTED_PUBLIC_KEY", ""),
                secret_key=_env("HOSTED_SECRET_KEY", ""),
                redirect_url=_env("HOSTED_REDIRECT_URL", DEFAULT_REDIRECT_URL),
                payment_options=_env("HOSTED_PAYMENT_OPTIONS", DEFAULT_PAYMENT_OPTIONS),
                title=_env("HOSTED_TITLE", "Storefront"),
                logo=_env("HOSTED_LOGO", ""),
            ),
            wallet=WalletSettings(
                receiving_address=_env("WALLET_ADDRESS", DEFAULT_WALLET_ADDRESS),
                currency=_env("WALLET_CURRENCY", "ETH"),
                rpc_url=_env("WALLET_RPC_URL", ""),
                slippage=Decimal(_env("WALLET_SLIPPAGE", "0.02")),
            ),
            assistant=AssistantSettings(
                api_key=_env("ASSISTANT_API_KEY", ""),
                base_url=_env("ASSISTANT_BASE_URL", DEFAULT_ASSISTANT_URL),
                model=_env("ASSISTANT_MODEL", DEFAULT_ASSISTANT_MODEL),
            ),
        )

    def with_database_url(self, url: str) -> Settings:
        return replace(self, database_url=url)

    def with_test_mode(self, enabled: bool = True) -> Settings:
        return replace(self, test_mode=enabled)

    def with_hosted(self, **changes: str) -> Settings:
        return replace(self, hosted=replace(self.hosted, **changes))

    def with_wallet(self, **changes: object) -> Settings:
        return replace(self, wallet=replace(self.wallet, **changes))

    def with_assistant(self, **changes: object) -> Settings:
        return replace(self, assistant=replace(self.assistant, **changes))


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


__all__ = (
    "Settings",
    "HostedCheckoutSettings",
    "WalletSettings",
    "AssistantSettings",
    "configure_logging",
)
