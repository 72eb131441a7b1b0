"""
Row ⇄ domain conversion and paging helpers.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront._types import money
from storefront.db import (
    CouponTable,
    NotificationTable,
    OrderItemTable,
    OrderTable,
    ProductTable,
    ReturnRequestTable,
)
from storefront.models import (
    Coupon,
    CouponType,
    Notification,
    NotificationType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product,
    ReturnReason,
    ReturnRequest,
    ReturnStatus,
    ShippingAddress,
)


def _money_or_none(value: Decimal | None) -> Decimal | None:
    return money(value) if value is not None else None


def product_from_row(row: ProductTable, category: str | None) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=money(row.price),
        discount=Decimal(row.discount or 0),
        category=category,
        in_stock=row.in_stock,
        featured=row.featured,
        is_new=row.is_new,
        rating=row.rating,
        specifications=dict(row.specifications or {}),
    )


def item_from_row(row: OrderItemTable) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        quantity=row.quantity,
        price=money(row.price),
    )


def order_from_row(row: OrderTable, items: tuple[OrderItem, ...] = ()) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        shipping_address=ShippingAddress.coerce(row.shipping_address),
        subtotal=money(row.subtotal),
        discount_amount=money(row.discount_amount),
        total=money(row.total),
        status=OrderStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
        items=items,
        payment_method=PaymentMethod(row.payment_method) if row.payment_method else None,
        payment_reference=row.payment_reference,
        tracking_number=row.tracking_number,
        coupon_code=row.coupon_code,
        notes=row.notes,
        estimated_delivery=row.estimated_delivery,
    )


def coupon_from_row(row: CouponTable) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        type=CouponType(row.type),
        discount_value=Decimal(row.discount_value),
        min_purchase_amount=_money_or_none(row.min_purchase_amount),
        max_discount_amount=_money_or_none(row.max_discount_amount),
        max_uses=row.max_uses,
        current_uses=row.current_uses,
        applies_to=tuple(row.applies_to or ()),
        is_active=row.is_active,
        valid_from=row.valid_from,
        valid_to=row.valid_to,
        description=row.description,
    )


def return_from_row(row: ReturnRequestTable) -> ReturnRequest:
    return ReturnRequest(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        user_id=row.user_id,
        quantity=row.quantity,
        reason=ReturnReason(row.reason),
        status=ReturnStatus(row.status),
        requested_at=row.requested_at,
        description=row.description,
        admin_notes=row.admin_notes,
        refund_amount=_money_or_none(row.refund_amount),
        decided_at=row.decided_at,
    )


def notification_from_row(row: NotificationTable) -> Notification:
    return Notification(
        id=row.id,
        user_id=row.user_id,
        type=NotificationType(row.type),
        title=row.title,
        message=row.message,
        created_at=row.created_at,
        data=dict(row.data or {}),
        is_read=row.is_read,
    )


async def paged(
    session: AsyncSession,
    stmt: Select[Any],
    page: int,
    limit: int,
) -> tuple[list[Any], int]:
    """Run stmt for one 1-based page. Returns (rows, total count)."""
    count = await session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    rows = await session.scalars(stmt.offset((page - 1) * limit).limit(limit))
    return list(rows), int(count or 0)


__all__ = (
    "product_from_row",
    "item_from_row",
    "order_from_row",
    "coupon_from_row",
    "return_from_row",
    "notification_from_row",
    "paged",
)
