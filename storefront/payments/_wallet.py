"""
Wallet transfer (crypto).

A WalletSession owns the connection to an EIP-1193 provider for as long
as checkout needs it:

    async with WalletSession(provider) as wallet:
        match await wallet.send_transfer(receiving_address, wei_hex(amount), order_memo(order.id)):
            case Ok(tx_hash): ...

The order memo in the transaction data is what ties an on-chain transfer
to one order; the server refuses transfers without it.

Listeners for accountsChanged / chainChanged are attached on connect()
and removed on disconnect(), including when the block exits on error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.errors import Failure, Failures
from storefront.lift import provider as lift_provider

logger = logging.getLogger(__name__)

USER_REJECTED = 4001

NETWORKS: dict[str, str] = {
    "0x1": "Ethereum Mainnet",
    "0x3": "Ropsten Test Network",
    "0x4": "Rinkeby Test Network",
    "0x5": "Goerli Test Network",
    "0x2a": "Kovan Test Network",
    "0x89": "Polygon Mainnet",
    "0x13881": "Polygon Mumbai Testnet",
    "0xaa36a7": "Sepolia Test Network",
}


def network_name(chain_id: str) -> str:
    return NETWORKS.get(chain_id.lower(), f"Chain ID: {chain_id}")


def order_memo(order_id: str) -> str:
    """Transaction data tagging a transfer with the order it pays for."""
    return "0x" + order_id.encode().hex()


class WalletError(Exception):
    """Error raised by a wallet provider, carrying the EIP-1193 code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


type Listener = Callable[..., None]


class WalletProvider(Protocol):
    async def request(self, method: str, params: list[Any] | None = None) -> Any: ...

    def on(self, event: str, listener: Listener) -> None: ...

    def remove_listener(self, event: str, listener: Listener) -> None: ...


def _wallet_failure(e: Exception, message: str) -> Failure:
    if isinstance(e, WalletError) and e.code == USER_REJECTED:
        return Failures.cancelled("Transaction was rejected in the wallet")
    return Failures.provider(f"{message}: {e}", e)


class WalletSession:
    def __init__(self, provider: WalletProvider | None) -> None:
        self._provider = provider
        self._address: str | None = None
        self._chain_id: str | None = None
        self._subscribed = False

    @property
    def installed(self) -> bool:
        return self._provider is not None

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def chain_id(self) -> str | None:
        return self._chain_id

    @property
    def network(self) -> str | None:
        return network_name(self._chain_id) if self._chain_id else None

    @property
    def connected(self) -> bool:
        return self._address is not None

    # ─── lifecycle ────────────────────────────────────────────────────────────

    async def connect(self) -> Result[str, Failure]:
        """Ask for account access. Ok(address)."""
        if self._provider is None:
            return Error(Failures.provider("Wallet is not installed"))

        try:
            accounts = await self._provider.request("eth_requestAccounts")
            chain_id = await self._provider.request("eth_chainId")
        except Exception as e:
            return Error(_wallet_failure(e, "Failed to connect wallet"))

        if not accounts:
            return Error(Failures.provider("No accounts found"))

        self._address = accounts[0]
        self._chain_id = chain_id
        if not self._subscribed:
            self._provider.on("accountsChanged", self._on_accounts_changed)
            self._provider.on("chainChanged", self._on_chain_changed)
            self._subscribed = True
        logger.info("Wallet %s connected on %s", self._address, self.network)
        return Ok(self._address)

    async def disconnect(self) -> None:
        if self._provider is not None and self._subscribed:
            self._provider.remove_listener("accountsChanged", self._on_accounts_changed)
            self._provider.remove_listener("chainChanged", self._on_chain_changed)
        self._subscribed = False
        self._address = None
        self._chain_id = None

    async def __aenter__(self) -> WalletSession:
        match await self.connect():
            case Error(e):
                await self.disconnect()
                raise WalletError(0, e.message)
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.disconnect()

    # ─── provider events ──────────────────────────────────────────────────────

    def _on_accounts_changed(self, accounts: list[str]) -> None:
        self._address = accounts[0] if accounts else None

    def _on_chain_changed(self, chain_id: str) -> None:
        self._chain_id = chain_id

    # ─── transfer ─────────────────────────────────────────────────────────────

    async def send_transfer(self, to: str, value_wei_hex: str, data: str | None = None) -> Result[str, Failure]:
        """eth_sendTransaction; Ok(tx hash), not yet block-confirmed."""
        if self._provider is None:
            return Error(Failures.provider("Wallet is not installed"))
        if self._address is None:
            return Error(Failures.provider("Wallet is not connected"))

        tx = {"from": self._address, "to": to, "value": value_wei_hex}
        if data is not None:
            tx["data"] = data
        try:
            tx_hash = await self._provider.request("eth_sendTransaction", [tx])
        except Exception as e:
            return Error(_wallet_failure(e, "Crypto payment failed"))
        return Ok(tx_hash)


# ═══════════════════════════════════════════════════════════════════════════════
# Chain lookups (server side)
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class ChainTransfer:
    hash: str
    to: str
    value_wei: int
    data: str
    succeeded: bool


class ChainClient:
    """Minimal JSON-RPC client for confirming a transfer landed."""

    def __init__(self, rpc_url: str, client: httpx.AsyncClient) -> None:
        self._url = rpc_url
        self._client = client

    async def _call(self, method: str, params: list[Any]) -> Any:
        response = await self._client.post(
            self._url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
        )
        response.raise_for_status()
        body = response.json()
        if body.get("error"):
            raise RuntimeError(body["error"].get("message", "RPC error"))
        return body.get("result")

    def transfer(self, tx_hash: str) -> LazyCoroResult[ChainTransfer | None, Failure]:
        async def impl() -> ChainTransfer | None:
            tx = await self._call("eth_getTransactionByHash", [tx_hash])
            if tx is None:
                return None
            receipt = await self._call("eth_getTransactionReceipt", [tx_hash])
            return ChainTransfer(
                hash=tx_hash,
                to=(tx.get("to") or "").lower(),
                value_wei=int(tx.get("value") or "0x0", 16),
                data=(tx.get("input") or "0x").lower(),
                succeeded=receipt is not None and receipt.get("status") == "0x1",
            )
        return lift_provider(impl, "Chain lookup failed")


__all__ = (
    "WalletProvider",
    "WalletError",
    "WalletSession",
    "USER_REJECTED",
    "NETWORKS",
    "network_name",
    "order_memo",
    "ChainClient",
    "ChainTransfer",
)
