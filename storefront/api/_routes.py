"""
HTTP routes. Handlers only translate: schema in, service call, schema out.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Annotated

from fastapi import APIRouter, Header, Query, Request, Response
from fastapi.responses import JSONResponse
from kungfu import Error, Ok

from storefront.api._codec import FailureError, respond, unwrap
from storefront.api._deps import CurrentIdentity, Store
from storefront.api._schemas import (
    CartItemIn,
    CartOut,
    ChatIn,
    ChatOut,
    CouponCheckIn,
    CouponValidationOut,
    CreateOrderIn,
    FinalizeIn,
    GuestCartIn,
    MarkedOut,
    NotificationFeedOut,
    OrderOut,
    OrderPageOut,
    PaymentIn,
    QuantityIn,
    ReturnDecisionIn,
    ReturnIn,
    ReturnOut,
    ReturnPageOut,
    StatsOut,
    StatusIn,
    TransactionOut,
    TransferQuoteOut,
)
from storefront.assistant import NOT_CONFIGURED
from storefront.auth import Identity, require_identity
from storefront.cart import CartAggregator, MemoryCartStore, MergeStrategy
from storefront.container import Storefront
from storefront.errors import Failures
from storefront.models import CartLine, OrderStatus, Product, ReturnStatus

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

async def _signed_in_cart(store: Storefront, identity: Identity | None) -> CartAggregator:
    user = unwrap(require_identity(identity))
    cart = CartAggregator(MemoryCartStore(), store.backend.carts)
    unwrap(await cart.sign_in(user))
    return cart


async def _product(store: Storefront, product_id: str) -> Product:
    product = unwrap(await store.backend.products.get(product_id))
    if product is None:
        raise FailureError(Failures.not_found("Product", product_id))
    return product


async def _lines(store: Storefront, items: Sequence[CartItemIn]) -> list[CartLine]:
    products = unwrap(await store.backend.products.get_many(item.product_id for item in items))
    missing = [item.product_id for item in items if item.product_id not in products]
    if missing:
        raise FailureError(Failures.validation("Some products are no longer available", products=missing))
    return [CartLine(products[item.product_id], item.quantity) for item in items]


@router.get("/cart")
async def get_cart(store: Store, identity: CurrentIdentity) -> CartOut:
    cart = await _signed_in_cart(store, identity)
    return CartOut.from_domain(cart.items)


@router.post("/cart/items")
async def add_cart_item(body: CartItemIn, store: Store, identity: CurrentIdentity) -> CartOut:
    cart = await _signed_in_cart(store, identity)
    product = await _product(store, body.product_id)
    return respond(await cart.add_item(product, body.quantity), CartOut)


@router.patch("/cart/items/{product_id}")
async def update_cart_item(product_id: str, body: QuantityIn, store: Store, identity: CurrentIdentity) -> CartOut:
    cart = await _signed_in_cart(store, identity)
    return respond(await cart.update_quantity(product_id, body.quantity), CartOut)


@router.delete("/cart/items/{product_id}")
async def remove_cart_item(product_id: str, store: Store, identity: CurrentIdentity) -> CartOut:
    cart = await _signed_in_cart(store, identity)
    return respond(await cart.remove_item(product_id), CartOut)


@router.delete("/cart")
async def clear_cart(store: Store, identity: CurrentIdentity) -> CartOut:
    cart = await _signed_in_cart(store, identity)
    return respond(await cart.clear(), CartOut)


@router.post("/cart/merge")
async def merge_guest_cart(body: GuestCartIn, store: Store, identity: CurrentIdentity) -> CartOut:
    user = unwrap(require_identity(identity))
    guest = MemoryCartStore(await _lines(store, body.items))
    strategy = MergeStrategy.REPLACE if body.strategy == "replace" else MergeStrategy.ADDITIVE
    cart = CartAggregator(guest, store.backend.carts, strategy)
    return respond(await cart.sign_in(user), CartOut)


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/coupons/validate")
async def validate_coupon(body: CouponCheckIn, store: Store) -> CouponValidationOut:
    lines = await _lines(store, body.items)
    return respond(await store.coupons.check(body.code, lines), CouponValidationOut)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders & payments
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/orders", status_code=201)
async def create_order(
    body: CreateOrderIn,
    store: Store,
    identity: CurrentIdentity,
    idempotency_key: Annotated[str, Header(alias="Idempotency-Key")],
) -> OrderOut:
    return respond(await store.orders.create_order(identity, body.to_domain(idempotency_key)), OrderOut)


@router.get("/orders")
async def list_orders(
    store: Store,
    identity: CurrentIdentity,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> OrderPageOut:
    return respond(await store.queries.list_orders(identity, page, limit), OrderPageOut)


@router.get("/orders/{order_id}")
async def get_order(order_id: str, store: Store, identity: CurrentIdentity) -> OrderOut:
    return respond(await store.queries.get_order(identity, order_id), OrderOut)


@router.post("/orders/{order_id}/payments")
async def pay_order(order_id: str, body: PaymentIn, store: Store, identity: CurrentIdentity) -> TransactionOut:
    order = unwrap(await store.queries.get_order(identity, order_id))
    result = await store.payments.dispatch(order, body.method, body.to_domain())
    return TransactionOut.from_domain(result)


@router.get("/orders/{order_id}/payments/crypto-quote")
async def crypto_quote(order_id: str, store: Store, identity: CurrentIdentity) -> TransferQuoteOut:
    order = unwrap(await store.queries.get_order(identity, order_id))
    return respond(await store.payments.quote_transfer(order), TransferQuoteOut)


@router.post("/orders/{order_id}/finalize")
async def finalize_order(order_id: str, body: FinalizeIn, store: Store, identity: CurrentIdentity) -> OrderOut:
    result = await store.finalizer.finalize(
        identity,
        order_id,
        body.payment_method,
        transaction_id=body.transaction_id,
        transaction_hash=body.transaction_hash,
    )
    return respond(result, OrderOut)


@router.get("/payments/callback")
async def payment_callback(request: Request, store: Store, identity: CurrentIdentity) -> OrderOut:
    query = dict(request.query_params)
    return respond(await store.finalizer.complete_redirect(identity, query), OrderOut)


# ═══════════════════════════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/admin/orders")
async def list_all_orders(
    store: Store,
    identity: CurrentIdentity,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    status: OrderStatus | None = None,
) -> OrderPageOut:
    return respond(await store.queries.list_all_orders(identity, page, limit, status), OrderPageOut)


@router.patch("/admin/orders/{order_id}/status")
async def update_order_status(order_id: str, body: StatusIn, store: Store, identity: CurrentIdentity) -> OrderOut:
    result = await store.status.update_status(identity, order_id, body.status, body.tracking_number)
    return respond(result, OrderOut)


@router.get("/admin/stats")
async def order_stats(store: Store, identity: CurrentIdentity) -> StatsOut:
    return respond(await store.queries.order_stats(identity), StatsOut)


@router.get("/admin/returns")
async def list_all_returns(
    store: Store,
    identity: CurrentIdentity,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    status: ReturnStatus | None = None,
) -> ReturnPageOut:
    return respond(await store.returns.list_all_returns(identity, page, limit, status), ReturnPageOut)


@router.patch("/admin/returns/{return_id}")
async def decide_return(return_id: str, body: ReturnDecisionIn, store: Store, identity: CurrentIdentity) -> ReturnOut:
    result = await store.returns.update_return_status(
        identity,
        return_id,
        body.status,
        admin_notes=body.admin_notes,
        refund_amount=body.refund_amount,
    )
    return respond(result, ReturnOut)


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/returns", status_code=201)
async def create_return(body: ReturnIn, store: Store, identity: CurrentIdentity) -> ReturnOut:
    return respond(await store.returns.create_return_request(identity, body.to_domain()), ReturnOut)


@router.get("/returns")
async def list_returns(
    store: Store,
    identity: CurrentIdentity,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> ReturnPageOut:
    return respond(await store.returns.list_user_returns(identity, page, limit), ReturnPageOut)


@router.get("/returns/{return_id}")
async def get_return(return_id: str, store: Store, identity: CurrentIdentity) -> ReturnOut:
    return respond(await store.returns.get_return(identity, return_id), ReturnOut)


# ═══════════════════════════════════════════════════════════════════════════════
# Notifications
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/notifications")
async def list_notifications(
    store: Store,
    identity: CurrentIdentity,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    include_read: bool = True,
) -> NotificationFeedOut:
    result = await store.notifications.list(identity, page, limit, include_read)
    return respond(result, NotificationFeedOut)


@router.post("/notifications/read-all")
async def mark_all_notifications_read(store: Store, identity: CurrentIdentity) -> MarkedOut:
    return respond(await store.notifications.mark_all_read(identity), MarkedOut)


@router.post("/notifications/{notification_id}/read", status_code=204)
async def mark_notification_read(notification_id: str, store: Store, identity: CurrentIdentity) -> Response:
    unwrap(await store.notifications.mark_read(identity, notification_id))
    return Response(status_code=204)


@router.delete("/notifications/{notification_id}", status_code=204)
async def delete_notification(notification_id: str, store: Store, identity: CurrentIdentity) -> Response:
    unwrap(await store.notifications.delete(identity, notification_id))
    return Response(status_code=204)


# ═══════════════════════════════════════════════════════════════════════════════
# Assistant
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/chat", response_model=ChatOut)
async def chat(body: ChatIn, store: Store) -> JSONResponse:
    if not store.assistant.configured:
        return JSONResponse(status_code=500, content={"message": NOT_CONFIGURED})

    match await store.assistant.reply(body.to_domain(), body.context):
        case Ok(message):
            return JSONResponse(content=ChatOut(message=message).model_dump(exclude_none=True))
        case Error(e):
            logger.error("Chat request failed: %s", e.message)
            return JSONResponse(
                status_code=500,
                content=ChatOut(message="Internal server error", details=e.message).model_dump(),
            )


__all__ = ("router",)
