"""
Request-scoped dependencies.

Identity comes from headers set by the upstream auth gateway, which has
already verified the session; requests without X-User-Id are anonymous.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from storefront.auth import Authenticator, Identity
from storefront.container import Storefront


class GatewayAuthenticator:
    USER_ID = "x-user-id"
    EMAIL = "x-user-email"
    NAME = "x-user-name"
    PHONE = "x-user-phone"

    def __init__(self, request: Request) -> None:
        self._headers = request.headers

    async def current(self) -> Identity | None:
        user_id = self._headers.get(self.USER_ID, "").strip()
        if not user_id:
            return None
        return Identity(
            user_id=user_id,
            email=self._headers.get(self.EMAIL, ""),
            name=self._headers.get(self.NAME, ""),
            phone=self._headers.get(self.PHONE, ""),
        )


def get_store(request: Request) -> Storefront:
    return request.app.state.storefront


async def get_identity(request: Request) -> Identity | None:
    authenticator: Authenticator = GatewayAuthenticator(request)
    return await authenticator.current()


Store = Annotated[Storefront, Depends(get_store)]
CurrentIdentity = Annotated[Identity | None, Depends(get_identity)]


__all__ = ("GatewayAuthenticator", "get_store", "get_identity", "Store", "CurrentIdentity")
