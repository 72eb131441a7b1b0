"""
User notifications.

emit() is a best-effort side effect: failures are logged and never
block the state transition that triggered them.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error

from storefront._types import Clock, utcnow
from storefront.auth import Identity, require_identity
from storefront.backend import Backend
from storefront.errors import Failure, Failures
from storefront.models import Notification, NotificationType, Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationFeed:
    page: Page[Notification]
    unread_count: int


class NotificationService:
    def __init__(self, backend: Backend, clock: Clock = utcnow) -> None:
        self._backend = backend
        self._clock = clock

    async def emit(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            created_at=self._clock(),
            data=data or {},
        )
        match await self._backend.notifications.insert(notification):
            case Ok(stored):
                return stored
            case Error(e):
                logger.warning("Notification %r for user %s not stored: %s", title, user_id, e)
                return None

    async def list(
        self,
        identity: Identity | None,
        page: int = 1,
        limit: int = 10,
        include_read: bool = True,
    ) -> Result[NotificationFeed, Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                match await self._backend.notifications.list_for_user(user.user_id, page, limit, include_read):
                    case Ok((items, unread)):
                        return Ok(NotificationFeed(items, unread))
                    case Error(e):
                        return Error(e)

    async def mark_read(self, identity: Identity | None, notification_id: str) -> Result[None, Failure]:
        return await self._owned(identity, notification_id, self._backend.notifications.mark_read)

    async def delete(self, identity: Identity | None, notification_id: str) -> Result[None, Failure]:
        return await self._owned(identity, notification_id, self._backend.notifications.delete)

    async def mark_all_read(self, identity: Identity | None) -> Result[int, Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                return await self._backend.notifications.mark_all_read(user.user_id)

    async def _owned(self, identity, notification_id, action) -> Result[None, Failure]:
        match require_identity(identity):
            case Error(e):
                return Error(e)
            case Ok(user):
                match await action(notification_id, user.user_id):
                    case Ok(True):
                        return Ok(None)
                    case Ok(False):
                        return Error(Failures.not_found("Notification", notification_id))
                    case Error(e):
                        return Error(e)


__all__ = ("NotificationService", "NotificationFeed")
