"""
Cart aggregator — one cart view over local (anonymous) or remote (signed-in) storage.

Signed-in mutations go to the remote store and the cart is re-fetched
afterwards. A failed round-trip leaves `items` exactly as it was.
"""

from __future__ import annotations

import logging
from enum import Enum, auto

from kungfu import Result, Ok, Error, LazyCoroResult

from storefront import saga as S
from storefront._types import Money
from storefront.auth import Identity
from storefront.backend import CartRepo
from storefront.errors import Failure, Failures
from storefront.models import CartLine, Product, subtotal_of
from storefront.cart._local import LocalCartStore

logger = logging.getLogger(__name__)


class MergeStrategy(Enum):
    """
    How a non-empty guest cart meets the remote cart on sign-in.

    REPLACE: remote cleared, guest lines inserted (last writer wins,
             remote-only lines are lost).
    ADDITIVE: quantities summed per product, remote-only lines kept.
    """

    REPLACE = auto()
    ADDITIVE = auto()


type Lines = tuple[CartLine, ...]


class CartAggregator:
    def __init__(
        self,
        local: LocalCartStore,
        carts: CartRepo,
        strategy: MergeStrategy = MergeStrategy.ADDITIVE,
    ) -> None:
        self._local = local
        self._carts = carts
        self._strategy = strategy
        self._identity: Identity | None = None
        self._items: Lines = tuple(local.load())

    # ─── view ─────────────────────────────────────────────────────────────────

    @property
    def items(self) -> Lines:
        return self._items

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def total_items(self) -> int:
        return sum(line.quantity for line in self._items)

    def subtotal(self) -> Money:
        return subtotal_of(self._items)

    # ─── mutations ────────────────────────────────────────────────────────────

    async def add_item(self, product: Product, quantity: int = 1) -> Result[Lines, Failure]:
        if quantity < 1:
            return Error(Failures.validation("Quantity must be at least 1"))
        if not product.in_stock:
            return Error(Failures.validation(f"{product.name} is out of stock"))

        if self._identity is not None:
            return await self._remote(self._identity, self._carts.add(self._identity.user_id, product.id, quantity))

        if any(line.product.id == product.id for line in self._items):
            return self._store_local(tuple(
                CartLine(line.product, line.quantity + quantity) if line.product.id == product.id else line
                for line in self._items
            ))
        return self._store_local((*self._items, CartLine(product, quantity)))

    async def remove_item(self, product_id: str) -> Result[Lines, Failure]:
        if self._identity is not None:
            return await self._remote(self._identity, self._carts.remove(self._identity.user_id, product_id))
        return self._store_local(tuple(line for line in self._items if line.product.id != product_id))

    async def update_quantity(self, product_id: str, quantity: int) -> Result[Lines, Failure]:
        """A quantity of zero or less removes the line."""
        if quantity <= 0:
            return await self.remove_item(product_id)

        if self._identity is not None:
            return await self._remote(self._identity, self._carts.set_quantity(self._identity.user_id, product_id, quantity))
        return self._store_local(tuple(
            CartLine(line.product, quantity) if line.product.id == product_id else line
            for line in self._items
        ))

    async def clear(self) -> Result[Lines, Failure]:
        if self._identity is not None:
            return await self._remote(self._identity, self._carts.clear(self._identity.user_id))
        return self._store_local(())

    async def refresh(self) -> Result[Lines, Failure]:
        if self._identity is None:
            self._items = tuple(self._local.load())
            return Ok(self._items)
        return await self._fetch(self._identity)

    # ─── session transitions ──────────────────────────────────────────────────

    async def sign_in(self, identity: Identity) -> Result[Lines, Failure]:
        """
        Switch to the user's remote cart, merging any guest lines first.

        The guest cart is cleared only after the merge succeeded; on
        failure the aggregator stays anonymous so sign-in can be retried.
        """
        guest = self._local.load()
        if guest:
            match await self._merge(identity.user_id, guest):
                case Error(e):
                    logger.warning("Cart merge for user %s failed: %s", identity.user_id, e)
                    return Error(e)
            self._local.save([])

        match await self._fetch(identity):
            case Ok(lines):
                self._identity = identity
                return Ok(lines)
            case Error(e):
                return Error(e)

    def sign_out(self) -> Lines:
        self._identity = None
        self._items = tuple(self._local.load())
        return self._items

    # ─── internals ────────────────────────────────────────────────────────────

    def _store_local(self, lines: Lines) -> Result[Lines, Failure]:
        self._local.save(lines)
        self._items = lines
        return Ok(lines)

    async def _remote(self, identity: Identity, action: LazyCoroResult[object, Failure]) -> Result[Lines, Failure]:
        match await action:
            case Error(e):
                return Error(e)
        return await self._fetch(identity)

    async def _fetch(self, identity: Identity) -> Result[Lines, Failure]:
        match await self._carts.lines(identity.user_id):
            case Ok(lines):
                self._items = tuple(lines)
                return Ok(self._items)
            case Error(e):
                return Error(e)

    async def _merge(self, user_id: str, guest: list[CartLine]) -> Result[None, Failure]:
        match await self._carts.lines(user_id):
            case Error(e):
                return Error(e)
            case Ok(remote):
                snapshot = {line.product.id: line.quantity for line in remote}

        match self._strategy:
            case MergeStrategy.REPLACE:
                saga = S.step(
                    "clear_remote",
                    self._carts.clear(user_id),
                    compensate=S.undo(lambda _: self._carts.insert_many(user_id, list(snapshot.items()))),
                ).then(lambda _: S.step(
                    "insert_guest",
                    self._carts.insert_many(user_id, [(line.product.id, line.quantity) for line in guest]),
                ))
            case MergeStrategy.ADDITIVE:
                saga = S.sequence([self._additive_step(user_id, line, snapshot) for line in guest])

        match await S.run(saga):
            case Ok(_):
                return Ok(None)
            case Error(e):
                return Error(Failures.partial_failure("Failed to sync cart", e.error))

    def _additive_step(self, user_id: str, line: CartLine, snapshot: dict[str, int]) -> S.SagaStep[None, Failure]:
        pid = line.product.id
        previous = snapshot.get(pid)
        if previous is None:
            restore = S.undo(lambda _: self._carts.remove(user_id, pid))
        else:
            restore = S.undo(lambda _: self._carts.set_quantity(user_id, pid, previous))
        return S.step(f"merge:{pid}", self._carts.add(user_id, pid, line.quantity), compensate=restore)


__all__ = ("CartAggregator", "MergeStrategy")
