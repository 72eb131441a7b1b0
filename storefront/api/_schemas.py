"""
Request / response models.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from storefront import payments as P
from storefront.backend import OrderStats
from storefront.coupons import CouponValidation
from storefront.models import (
    CartLine,
    Notification,
    NotificationType,
    Order,
    OrderStatus,
    Page,
    PaymentMethod,
    ReturnReason,
    ReturnRequest,
    ReturnStatus,
    ShippingAddress,
)
from storefront.notifications import NotificationFeed
from storefront.orders import CreateOrder, OrderLine
from storefront.returns import CreateReturn


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

class CartItemIn(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class QuantityIn(BaseModel):
    quantity: int


class GuestCartIn(BaseModel):
    """Lines collected while signed out, merged on sign-in."""
    items: list[CartItemIn]
    strategy: Literal["additive", "replace"] = "additive"


class CartLineOut(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    @classmethod
    def from_domain(cls, dom: CartLine) -> CartLineOut:
        return cls(
            product_id=dom.product.id,
            name=dom.product.name,
            unit_price=dom.product.unit_price,
            quantity=dom.quantity,
            line_total=dom.line_total,
        )


class CartOut(BaseModel):
    items: list[CartLineOut]
    total_items: int
    subtotal: Decimal

    @classmethod
    def from_domain(cls, dom: Sequence[CartLine]) -> CartOut:
        lines = [CartLineOut.from_domain(line) for line in dom]
        return cls(
            items=lines,
            total_items=sum(line.quantity for line in lines),
            subtotal=sum((line.line_total for line in lines), Decimal("0.00")),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════

class CouponCheckIn(BaseModel):
    code: str
    items: list[CartItemIn]


class CouponValidationOut(BaseModel):
    valid: bool
    message: str
    discount_amount: Decimal
    code: str | None = None

    @classmethod
    def from_domain(cls, dom: CouponValidation) -> CouponValidationOut:
        return cls(valid=dom.valid, message=dom.message, discount_amount=dom.discount_amount, code=dom.code)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class AddressIn(BaseModel):
    first_name: str
    last_name: str
    address_line1: str
    address_line2: str = ""
    city: str
    state: str = ""
    postal_code: str = ""
    country: str
    phone: str

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(**self.model_dump())


class CreateOrderIn(BaseModel):
    items: list[CartItemIn]
    shipping_address: AddressIn
    payment_method: PaymentMethod
    coupon_code: str | None = None
    notes: str | None = None

    def to_domain(self, idempotency_key: str) -> CreateOrder:
        return CreateOrder(
            items=tuple(OrderLine(item.product_id, item.quantity) for item in self.items),
            shipping_address=self.shipping_address.to_domain(),
            payment_method=self.payment_method,
            idempotency_key=idempotency_key,
            coupon_code=self.coupon_code or None,
            notes=self.notes,
        )


class OrderItemOut(BaseModel):
    product_id: str
    quantity: int
    price: Decimal


class OrderOut(BaseModel):
    id: str
    status: OrderStatus
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    items: list[OrderItemOut]
    shipping_address: dict[str, str]
    payment_method: PaymentMethod | None
    payment_reference: str | None
    tracking_number: str | None
    coupon_code: str | None
    estimated_delivery: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, dom: Order) -> OrderOut:
        return cls(
            id=dom.id,
            status=dom.status,
            subtotal=dom.subtotal,
            discount_amount=dom.discount_amount,
            total=dom.total,
            items=[OrderItemOut(product_id=i.product_id, quantity=i.quantity, price=i.price) for i in dom.items],
            shipping_address=dom.shipping_address.to_dict(),
            payment_method=dom.payment_method,
            payment_reference=dom.payment_reference,
            tracking_number=dom.tracking_number,
            coupon_code=dom.coupon_code,
            estimated_delivery=dom.estimated_delivery,
            created_at=dom.created_at,
            updated_at=dom.updated_at,
        )


class OrderPageOut(BaseModel):
    orders: list[OrderOut]
    count: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_domain(cls, dom: Page[Order]) -> OrderPageOut:
        return cls(
            orders=[OrderOut.from_domain(o) for o in dom.items],
            count=dom.count,
            page=dom.page,
            limit=dom.limit,
            total_pages=dom.total_pages,
        )


class StatusIn(BaseModel):
    status: OrderStatus
    tracking_number: str | None = None


class StatsOut(BaseModel):
    total_revenue: Decimal
    total_orders: int
    by_status: dict[str, int]
    sales_by_month: dict[str, Decimal]
    recent_orders: list[OrderOut]

    @classmethod
    def from_domain(cls, dom: OrderStats) -> StatsOut:
        return cls(
            total_revenue=dom.total_revenue,
            total_orders=dom.total_orders,
            by_status=dom.by_status,
            sales_by_month=dom.sales_by_month,
            recent_orders=[OrderOut.from_domain(o) for o in dom.recent_orders],
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════

class CustomerIn(BaseModel):
    email: str
    name: str
    phone_number: str = ""


class CardIn(BaseModel):
    number: str
    expiry: str
    cvc: str


class PaymentIn(BaseModel):
    method: PaymentMethod
    customer: CustomerIn | None = None
    mobile_number: str | None = None
    card: CardIn | None = None

    def to_domain(self) -> P.PaymentRequest:
        if self.card is not None:
            return P.CardPayment(P.CardDetails(self.card.number, self.card.expiry, self.card.cvc))
        if self.customer is not None:
            return P.HostedPayment(
                P.Customer(self.customer.email, self.customer.name, self.customer.phone_number),
                mobile_number=self.mobile_number,
            )
        # Wallets live in the customer's browser, never on this server.
        return P.WalletPayment(session=None)


class TransactionOut(BaseModel):
    success: bool
    order_reference: str
    transaction_id: str | None = None
    error: str | None = None
    redirect_url: str | None = None
    cancelled: bool = False

    @classmethod
    def from_domain(cls, dom: P.TransactionResult) -> TransactionOut:
        return cls(
            success=dom.success,
            order_reference=dom.order_reference,
            transaction_id=dom.transaction_id,
            error=dom.error,
            redirect_url=dom.redirect_url,
            cancelled=dom.cancelled,
        )


class TransferQuoteOut(BaseModel):
    to: str
    value: str
    amount_wei: int
    currency: str
    data: str

    @classmethod
    def from_domain(cls, dom: P.TransferQuote) -> TransferQuoteOut:
        return cls(to=dom.to, value=dom.value_hex, amount_wei=dom.amount_wei, currency=dom.currency, data=dom.data)


class FinalizeIn(BaseModel):
    payment_method: PaymentMethod
    transaction_id: str | None = None
    transaction_hash: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════

class ReturnIn(BaseModel):
    order_id: str
    product_id: str
    quantity: int
    reason: ReturnReason
    description: str | None = None

    def to_domain(self) -> CreateReturn:
        return CreateReturn(
            order_id=self.order_id,
            product_id=self.product_id,
            quantity=self.quantity,
            reason=self.reason,
            description=self.description,
        )


class ReturnDecisionIn(BaseModel):
    status: ReturnStatus
    admin_notes: str | None = None
    refund_amount: Decimal | None = None


class ReturnOut(BaseModel):
    id: str
    order_id: str
    product_id: str
    quantity: int
    reason: ReturnReason
    status: ReturnStatus
    description: str | None
    admin_notes: str | None
    refund_amount: Decimal | None
    requested_at: datetime
    decided_at: datetime | None

    @classmethod
    def from_domain(cls, dom: ReturnRequest) -> ReturnOut:
        return cls(
            id=dom.id,
            order_id=dom.order_id,
            product_id=dom.product_id,
            quantity=dom.quantity,
            reason=dom.reason,
            status=dom.status,
            description=dom.description,
            admin_notes=dom.admin_notes,
            refund_amount=dom.refund_amount,
            requested_at=dom.requested_at,
            decided_at=dom.decided_at,
        )


class ReturnPageOut(BaseModel):
    returns: list[ReturnOut]
    count: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def from_domain(cls, dom: Page[ReturnRequest]) -> ReturnPageOut:
        return cls(
            returns=[ReturnOut.from_domain(r) for r in dom.items],
            count=dom.count,
            page=dom.page,
            limit=dom.limit,
            total_pages=dom.total_pages,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Notifications
# ═══════════════════════════════════════════════════════════════════════════════

class NotificationOut(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any]
    is_read: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, dom: Notification) -> NotificationOut:
        return cls(
            id=dom.id,
            type=dom.type,
            title=dom.title,
            message=dom.message,
            data=dom.data,
            is_read=dom.is_read,
            created_at=dom.created_at,
        )


class NotificationFeedOut(BaseModel):
    notifications: list[NotificationOut]
    unread_count: int
    count: int
    page: int
    total_pages: int

    @classmethod
    def from_domain(cls, dom: NotificationFeed) -> NotificationFeedOut:
        return cls(
            notifications=[NotificationOut.from_domain(n) for n in dom.page.items],
            unread_count=dom.unread_count,
            count=dom.page.count,
            page=dom.page.page,
            total_pages=dom.page.total_pages,
        )


class MarkedOut(BaseModel):
    updated: int

    @classmethod
    def from_domain(cls, dom: int) -> MarkedOut:
        return cls(updated=dom)


# ═══════════════════════════════════════════════════════════════════════════════
# Assistant
# ═══════════════════════════════════════════════════════════════════════════════

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatIn(BaseModel):
    messages: list[ChatMessage]
    context: dict[str, Any] | None = None

    def to_domain(self) -> list[dict[str, str]]:
        return [m.model_dump() for m in self.messages]


class ChatOut(BaseModel):
    message: str
    details: str | None = None
