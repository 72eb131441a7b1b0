"""
Authentication capability.

Sign-in itself is delegated to the external auth provider; the core only
sees an Identity (or None) and asks the backend about roles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from kungfu import Result, Ok, Error

from storefront.backend import Backend, ADMIN
from storefront.errors import Failure, Failures


@dataclass(frozen=True, slots=True)
class Identity:
    user_id: str
    email: str = ""
    name: str = ""
    phone: str = ""


class Authenticator(Protocol):
    async def current(self) -> Identity | None: ...


def require_identity(identity: Identity | None) -> Result[Identity, Failure]:
    if identity is None:
        return Error(Failures.unauthenticated())
    return Ok(identity)


async def require_admin(backend: Backend, identity: Identity | None) -> Result[Identity, Failure]:
    match require_identity(identity):
        case Error(e):
            return Error(e)
        case Ok(user):
            match await backend.roles.has_role(user.user_id, ADMIN):
                case Ok(True):
                    return Ok(user)
                case Ok(False):
                    return Error(Failures.forbidden("Admin role required"))
                case Error(e):
                    return Error(e)


__all__ = (
    "Identity",
    "Authenticator",
    "require_identity",
    "require_admin",
)
