"""Wallet session lifecycle, wallet dispatch and on-chain verification."""

import json
from decimal import Decimal

import httpx
import pytest

from conftest import ADDRESS, CUSTOMER, MEMORY_DB, OTHER, err, ok
from storefront.backend import REFERENCE_TAKEN
from storefront.config import Settings
from storefront.errors import FailureKind
from storefront.models import OrderStatus, PaymentMethod
from storefront.orders import CreateOrder, OrderLine
from storefront.payments import (
    USER_REJECTED,
    StaticRates,
    WalletError,
    WalletPayment,
    WalletSession,
    network_name,
    order_memo,
)

RATES = StaticRates({("RWF", "ETH"): Decimal("0.0000002")})
RPC_URL = "https://rpc.test"
STORE_WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
BUYER_WALLET = "0xAbC0000000000000000000000000000000000001"
TX_HASH = "0x" + "ab" * 32


class FakeWallet:
    """Stands in for an EIP-1193 browser wallet."""

    def __init__(self, accounts=(BUYER_WALLET,), chain_id="0xaa36a7", reject_with=None):
        self.accounts = list(accounts)
        self.chain_id = chain_id
        self.reject_with = reject_with
        self.listeners = {}
        self.sent = []

    async def request(self, method, params=None):
        if self.reject_with is not None:
            raise self.reject_with
        match method:
            case "eth_requestAccounts":
                return self.accounts
            case "eth_chainId":
                return self.chain_id
            case "eth_sendTransaction":
                self.sent.append(params[0])
                return TX_HASH
        raise WalletError(4200, f"Unsupported method {method}")

    def on(self, event, listener):
        self.listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event, listener):
        self.listeners[event].remove(listener)

    def emit(self, event, *args):
        for listener in list(self.listeners.get(event, ())):
            listener(*args)


class FakeChain:
    """JSON-RPC node that knows about at most one transaction."""

    def __init__(self):
        self.tx = None
        self.receipt_status = "0x1"

    def __call__(self, request):
        call = json.loads(request.content)
        match call["method"]:
            case "eth_getTransactionByHash":
                result = self.tx
            case "eth_getTransactionReceipt":
                result = {"status": self.receipt_status} if self.tx else None
            case _:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": call["id"], "error": {"message": "method not found"}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": call["id"], "result": result})

    def send(self, order, to=STORE_WALLET, value=10 ** 16, memo=None):
        self.tx = {
            "hash": TX_HASH,
            "from": BUYER_WALLET,
            "to": to,
            "value": hex(value),
            "input": order_memo(order.id) if memo is None else memo,
        }


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def http_handler(chain):
    return chain


@pytest.fixture
def settings():
    return Settings(database_url=MEMORY_DB, test_mode=True, log_level="WARNING").with_wallet(rpc_url=RPC_URL)


def crypto_order(key="k-1"):
    return CreateOrder(
        items=(OrderLine("p-cement", 1),),
        shipping_address=ADDRESS,
        payment_method=PaymentMethod.CRYPTO,
        idempotency_key=key,
    )


class TestWalletSession:
    def test_connect_reads_account_and_network(self, run):
        wallet = FakeWallet()
        session = WalletSession(wallet)

        async def scenario():
            return await session.connect()

        assert ok(run(scenario)) == BUYER_WALLET
        assert session.connected
        assert session.network == "Sepolia Test Network"
        assert len(wallet.listeners["accountsChanged"]) == 1

    def test_follows_provider_events(self, run):
        wallet = FakeWallet()
        session = WalletSession(wallet)

        async def scenario():
            ok(await session.connect())
            wallet.emit("chainChanged", "0x89")
            wallet.emit("accountsChanged", [])

        run(scenario)
        assert session.network == "Polygon Mainnet"
        assert not session.connected

    def test_not_installed(self, run):
        session = WalletSession(None)

        async def scenario():
            return await session.connect(), await session.send_transfer(STORE_WALLET, "0x1")

        connect, send = run(scenario)
        assert not session.installed
        assert err(connect).message == "Wallet is not installed"
        assert err(send).message == "Wallet is not installed"

    def test_rejection_maps_to_cancelled(self, run):
        session = WalletSession(FakeWallet(reject_with=WalletError(USER_REJECTED, "User rejected the request.")))

        async def scenario():
            return await session.connect()

        failure = err(run(scenario))
        assert failure.kind is FailureKind.CANCELLED

    def test_no_accounts(self, run):
        async def scenario():
            return await WalletSession(FakeWallet(accounts=())).connect()

        assert err(run(scenario)).message == "No accounts found"

    def test_context_manager_detaches_listeners(self, run):
        wallet = FakeWallet()

        async def scenario():
            async with WalletSession(wallet) as session:
                assert session.connected
                assert wallet.listeners["chainChanged"]
            return session

        session = run(scenario)
        assert not session.connected
        assert wallet.listeners == {"accountsChanged": [], "chainChanged": []}

    def test_context_manager_raises_when_connect_fails(self, run):
        async def scenario():
            async with WalletSession(None):
                pass

        with pytest.raises(WalletError, match="Wallet is not installed"):
            run(scenario)

    def test_send_requires_connection(self, run):
        async def scenario():
            return await WalletSession(FakeWallet()).send_transfer(STORE_WALLET, "0x1")

        assert err(run(scenario)).message == "Wallet is not connected"

    def test_unknown_network_falls_back_to_chain_id(self):
        assert network_name("0x539") == "Chain ID: 0x539"
        assert network_name("0X1") == "Ethereum Mainnet"


class TestWalletDispatch:
    def test_sends_quoted_amount_to_store_wallet(self, in_store):
        wallet = FakeWallet()

        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            quote = ok(await store.payments.quote_transfer(order))
            async with WalletSession(wallet) as session:
                result = await store.payments.dispatch(order, PaymentMethod.CRYPTO, WalletPayment(session))
            return order, quote, result

        order, quote, result = in_store(scenario, rates=RATES)
        assert quote.amount_wei == 10 ** 16
        assert quote.data == order_memo(order.id)
        assert result.success
        assert result.transaction_id == TX_HASH
        assert wallet.sent == [
            {"from": BUYER_WALLET, "to": STORE_WALLET, "value": hex(10 ** 16), "data": order_memo(order.id)}
        ]

    def test_rejected_in_wallet(self, in_store):
        wallet = FakeWallet()

        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            session = WalletSession(wallet)
            ok(await session.connect())
            wallet.reject_with = WalletError(USER_REJECTED, "User denied transaction signature.")
            return await store.payments.dispatch(order, PaymentMethod.CRYPTO, WalletPayment(session))

        result = in_store(scenario, rates=RATES)
        assert not result.success
        assert result.cancelled
        assert result.error == "Transaction was rejected in the wallet"

    def test_needs_connected_wallet(self, in_store):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            missing = await store.payments.dispatch(order, PaymentMethod.CRYPTO, WalletPayment(None))
            idle = await store.payments.dispatch(order, PaymentMethod.CRYPTO, WalletPayment(WalletSession(FakeWallet())))
            return missing, idle

        missing, idle = in_store(scenario, rates=RATES)
        assert missing.error == "Wallet is not installed"
        assert idle.error == "Wallet is not connected"


class TestChainVerification:
    def test_confirmed_transfer_finalizes(self, in_store, chain):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            chain.send(order)
            return ok(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH))

        order = in_store(scenario, rates=RATES)
        assert order.status is OrderStatus.PROCESSING
        assert order.payment_reference == TX_HASH

    def test_small_rate_drift_is_tolerated(self, in_store, chain):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            chain.send(order, value=985 * 10 ** 13)
            return ok(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH))

        assert in_store(scenario, rates=RATES).status is OrderStatus.PROCESSING

    @pytest.mark.parametrize(
        ("setup", "reason"),
        [
            (lambda chain, order: None, "transaction not found"),
            (lambda chain, order: chain.send(order, to="0x0000000000000000000000000000000000000bad"), "transaction was sent to another address"),
            (lambda chain, order: chain.send(order, memo="0x"), "transaction is not tagged with this order"),
            (lambda chain, order: chain.send(order, memo=order_memo("another-order")), "transaction is not tagged with this order"),
            (lambda chain, order: chain.send(order, value=9 * 10 ** 15), f"received {9 * 10 ** 15} wei, expected {10 ** 16}"),
        ],
    )
    def test_rejects_unconfirmed_transfers(self, in_store, chain, setup, reason):
        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            setup(chain, order)
            failure = err(await store.finalizer.finalize(
                CUSTOMER, order.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH
            ))
            return failure, ok(await store.queries.get_order(CUSTOMER, order.id))

        failure, reloaded = in_store(scenario, rates=RATES)
        assert failure.message == f"Payment could not be verified: {reason}"
        assert reloaded.status is OrderStatus.PENDING

    def test_failed_receipt(self, in_store, chain):
        chain.receipt_status = "0x0"

        async def scenario(store):
            order = ok(await store.orders.create_order(CUSTOMER, crypto_order()))
            chain.send(order)
            return err(await store.finalizer.finalize(CUSTOMER, order.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH))

        assert in_store(scenario, rates=RATES).message == "Payment could not be verified: transaction is not confirmed"


class TestTransferReuse:
    def test_one_transfer_pays_for_one_order(self, in_store, chain):
        async def scenario(store):
            first = ok(await store.orders.create_order(CUSTOMER, crypto_order("k-a")))
            second = ok(await store.orders.create_order(OTHER, crypto_order("k-b")))
            chain.send(first)
            paid = ok(await store.finalizer.finalize(CUSTOMER, first.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH))
            reused = err(await store.finalizer.finalize(OTHER, second.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH))
            return paid, reused, ok(await store.queries.get_order(OTHER, second.id))

        paid, reused, second = in_store(scenario, rates=RATES)
        assert paid.status is OrderStatus.PROCESSING
        assert reused.kind is FailureKind.CONFLICT
        assert reused.message == REFERENCE_TAKEN
        assert second.status is OrderStatus.PENDING
        assert second.payment_reference is None

    def test_transfer_for_another_order_is_refused(self, in_store, chain):
        async def scenario(store):
            first = ok(await store.orders.create_order(CUSTOMER, crypto_order("k-a")))
            second = ok(await store.orders.create_order(OTHER, crypto_order("k-b")))
            chain.send(first)
            return err(await store.finalizer.finalize(OTHER, second.id, PaymentMethod.CRYPTO, transaction_hash=TX_HASH))

        failure = in_store(scenario, rates=RATES)
        assert failure.kind is FailureKind.PROVIDER
        assert failure.message == "Payment could not be verified: transaction is not tagged with this order"
