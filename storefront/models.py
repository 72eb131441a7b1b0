"""
Domain records.

Plain frozen dataclasses; persistence lives in storefront.db / storefront.backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from storefront._types import ZERO, Money, money


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    CARD = "credit_card"
    MOBILE_MONEY = "mobile_money"
    CRYPTO = "crypto"
    TEST_CARD = "test_card"


class CouponType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


class ReturnReason(Enum):
    DAMAGED = "damaged"
    WRONG_ITEM = "wrong_item"
    NOT_AS_DESCRIBED = "not_as_described"
    CHANGED_MIND = "changed_mind"
    DEFECTIVE = "defective"
    OTHER = "other"


class ReturnStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class NotificationType(Enum):
    ORDER_STATUS = "order_status"
    RETURN_STATUS = "return_status"
    SYSTEM = "system"
    PROMOTION = "promotion"


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog & cart
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    price: Money
    discount: Decimal = ZERO  # percent, 0..100
    category: str | None = None
    in_stock: bool = True
    featured: bool = False
    is_new: bool = False
    rating: Decimal | None = None
    specifications: dict[str, Any] = field(default_factory=dict)

    @property
    def unit_price(self) -> Money:
        """Price after the per-product discount."""
        return money(self.price * (Decimal(100) - self.discount) / Decimal(100))


@dataclass(frozen=True, slots=True)
class CartLine:
    product: Product
    quantity: int

    @property
    def line_total(self) -> Money:
        return money(self.product.unit_price * self.quantity)


def subtotal_of(lines: tuple[CartLine, ...] | list[CartLine]) -> Money:
    return money(sum((line.line_total for line in lines), ZERO))


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping address
# ═══════════════════════════════════════════════════════════════════════════════

_REQUIRED_ADDRESS_FIELDS = ("first_name", "last_name", "address_line1", "city", "country", "phone")


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    first_name: str = ""
    last_name: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    phone: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def missing_fields(self) -> list[str]:
        return [name for name in _REQUIRED_ADDRESS_FIELDS if not getattr(self, name).strip()]

    def to_dict(self) -> dict[str, str]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }

    @classmethod
    def coerce(cls, raw: ShippingAddress | dict[str, Any] | str | None) -> ShippingAddress:
        """
        Normalize any stored shape into a ShippingAddress.

        Legacy rows kept the address as one free-form string; the whole
        string lands in address_line1. Older dicts used camelCase keys.
        """
        match raw:
            case ShippingAddress():
                return raw
            case None:
                return cls()
            case str():
                return cls(address_line1=raw.strip())
            case dict():
                def pick(*keys: str) -> str:
                    for key in keys:
                        value = raw.get(key)
                        if value:
                            return str(value)
                    return ""

                return cls(
                    first_name=pick("first_name", "firstName"),
                    last_name=pick("last_name", "lastName"),
                    address_line1=pick("address_line1", "addressLine1", "address", "street"),
                    address_line2=pick("address_line2", "addressLine2"),
                    city=pick("city"),
                    state=pick("state", "province"),
                    postal_code=pick("postal_code", "postalCode", "zip"),
                    country=pick("country"),
                    phone=pick("phone", "phone_number"),
                )
            case _:
                raise TypeError(f"Unsupported shipping address shape: {type(raw).__name__}")


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class OrderItem:
    id: str
    order_id: str
    product_id: str
    quantity: int
    price: Money  # unit price captured at purchase

    @property
    def line_total(self) -> Money:
        return money(self.price * self.quantity)


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    user_id: str
    shipping_address: ShippingAddress
    subtotal: Money
    discount_amount: Money
    total: Money
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: tuple[OrderItem, ...] = ()
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    tracking_number: str | None = None
    coupon_code: str | None = None
    notes: str | None = None
    estimated_delivery: datetime | None = None

    @property
    def short_ref(self) -> str:
        return self.id[:8]

    def item_for(self, product_id: str) -> OrderItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Coupon:
    id: str
    code: str
    type: CouponType
    discount_value: Decimal
    min_purchase_amount: Money | None = None
    max_discount_amount: Money | None = None
    max_uses: int | None = None
    current_uses: int = 0
    applies_to: tuple[str, ...] = ()  # category names; empty = whole cart
    is_active: bool = True
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    description: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Returns & notifications
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class ReturnRequest:
    id: str
    order_id: str
    product_id: str
    user_id: str
    quantity: int
    reason: ReturnReason
    status: ReturnStatus
    requested_at: datetime
    description: str | None = None
    admin_notes: str | None = None
    refund_amount: Money | None = None
    decided_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False


@dataclass(frozen=True, slots=True)
class Page[T]:
    items: tuple[T, ...]
    count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.count // self.limit) if self.limit else 0


__all__ = (
    "OrderStatus",
    "PaymentMethod",
    "CouponType",
    "ReturnReason",
    "ReturnStatus",
    "NotificationType",
    "Product",
    "CartLine",
    "subtotal_of",
    "ShippingAddress",
    "OrderItem",
    "Order",
    "Coupon",
    "ReturnRequest",
    "Notification",
    "Page",
)
