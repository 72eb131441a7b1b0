"""
Return workflow: customers file requests, admins decide.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from kungfu import Result, Ok, Error

from storefront._types import Clock, money, utcnow
from storefront.auth import Identity, require_admin, require_identity
from storefront.backend import ADMIN, Backend
from storefront.errors import Failure, Failures
from storefront.models import NotificationType, OrderStatus, Page, ReturnReason, ReturnRequest, ReturnStatus
from storefront.notifications import NotificationService
from storefront.returns._machine import DECISIONS, RETURN_WINDOW_DAYS, can_return, can_transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CreateReturn:
    order_id: str
    product_id: str
    quantity: int
    reason: ReturnReason
    description: str | None = None


class ReturnService:
    def __init__(
        self,
        backend: Backend,
        notifications: NotificationService,
        window_days: int = RETURN_WINDOW_DAYS,
        clock: Clock = utcnow,
    ) -> None:
        self._backend = backend
        self._notifications = notifications
        self._window = window_days
        self._clock = clock

    async def create_return_request(self, identity: Identity | None, command: CreateReturn) -> Result[ReturnRequest, Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                pass

        match await self._backend.orders.get(command.order_id):
            case Error(e):
                return Error(e)
            case Ok(order) if order is None or order.user_id != user.user_id:
                return Error(Failures.not_found("Order", command.order_id))
            case Ok(order):
                pass

        now = self._clock()
        if not can_return(order, now, self._window):
            if order.status is not OrderStatus.DELIVERED:
                return Error(Failures.validation("Only delivered orders can be returned"))
            return Error(Failures.validation(f"Return period has expired ({self._window} days)"))

        item = order.item_for(command.product_id)
        if item is None:
            return Error(Failures.validation("This product is not part of the order"))

        match await self._backend.returns.quantity_claimed(order.id, command.product_id):
            case Error(e):
                return Error(e)
            case Ok(claimed):
                remaining = item.quantity - claimed

        if remaining <= 0:
            return Error(Failures.conflict("Every unit of this product already has a return request"))
        if not 1 <= command.quantity <= remaining:
            return Error(Failures.validation(f"Quantity must be between 1 and {remaining}"))

        request = ReturnRequest(
            id=str(uuid.uuid4()),
            order_id=order.id,
            product_id=command.product_id,
            user_id=user.user_id,
            quantity=command.quantity,
            reason=command.reason,
            status=ReturnStatus.PENDING,
            requested_at=now,
            description=(command.description or "").strip() or None,
        )
        match await self._backend.returns.insert(request):
            case Error(e):
                return Error(e)

        logger.info("Return %s filed for order %s", request.id, order.id)
        await self._notifications.emit(
            user.user_id,
            NotificationType.RETURN_STATUS,
            "Return Request Submitted",
            f"Your return request for order #{order.short_ref} has been submitted and is pending review.",
            {"return_id": request.id, "order_id": order.id},
        )
        return Ok(request)

    async def update_return_status(
        self,
        identity: Identity | None,
        return_id: str,
        status: ReturnStatus,
        admin_notes: str | None = None,
        refund_amount: Decimal | None = None,
    ) -> Result[ReturnRequest, Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)

        match await self._backend.returns.get(return_id):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Failures.not_found("Return request", return_id))
            case Ok(current):
                pass

        if not can_transition(current.status, status):
            return Error(Failures.invalid_transition("return request", current.status.value, status.value))

        fields: dict[str, Any] = {}
        if admin_notes:
            fields["admin_notes"] = admin_notes
        if refund_amount is not None:
            match await self._check_refund(current, refund_amount):
                case Error(e):
                    return Error(e)
                case Ok(amount):
                    fields["refund_amount"] = amount
        if status in DECISIONS:
            fields["decided_at"] = self._clock()

        match await self._backend.returns.transition(return_id, expected=current.status, status=status, **fields):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Failures.conflict("Return request was updated concurrently, reload and try again"))
            case Ok(updated):
                pass

        logger.info("Return %s moved %s -> %s", return_id, current.status.value, status.value)
        await self._notifications.emit(
            updated.user_id,
            NotificationType.RETURN_STATUS,
            f"Return {status.value.capitalize()}",
            f"Your return request #{return_id[:8]} has been {status.value}.",
            {"return_id": return_id, "status": status.value},
        )
        return Ok(updated)

    async def list_user_returns(self, identity: Identity | None, page: int = 1, limit: int = 10) -> Result[Page[ReturnRequest], Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                return await self._backend.returns.list_for_user(user.user_id, page, limit)

    async def list_all_returns(
        self,
        identity: Identity | None,
        page: int = 1,
        limit: int = 20,
        status: ReturnStatus | None = None,
    ) -> Result[Page[ReturnRequest], Failure]:
        match await require_admin(self._backend, identity):
            case Error(e):
                return Error(e)
        return await self._backend.returns.list_all(page, limit, status)

    async def get_return(self, identity: Identity | None, return_id: str) -> Result[ReturnRequest, Failure]:
        """Visible to its owner and to admins."""
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                pass

        match await self._backend.returns.get(return_id):
            case Error(e):
                return Error(e)
            case Ok(None):
                return Error(Failures.not_found("Return request", return_id))
            case Ok(request) if request.user_id == user.user_id:
                return Ok(request)
            case Ok(request):
                pass

        match await self._backend.roles.has_role(user.user_id, ADMIN):
            case Ok(True):
                return Ok(request)
            case Ok(False):
                return Error(Failures.not_found("Return request", return_id))
            case Error(e):
                return Error(e)

    async def _check_refund(self, request: ReturnRequest, amount: Decimal) -> Result[Decimal, Failure]:
        if amount < 0:
            return Error(Failures.validation("Refund amount cannot be negative"))

        match await self._backend.orders.get(request.order_id):
            case Error(e):
                return Error(e)
            case Ok(order):
                item = order.item_for(request.product_id) if order is not None else None

        if item is None:
            return Error(Failures.not_found("Order item", request.product_id))
        limit = money(item.price * request.quantity)
        if amount > limit:
            return Error(Failures.validation(f"Refund cannot exceed {limit:,.2f}"))
        return Ok(money(amount))


__all__ = ("ReturnService", "CreateReturn")
