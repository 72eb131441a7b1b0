"""
Wire codec: pydantic models convert to and from domain values.

    class Request(BaseModel):   def to_domain(self) -> DomainT
    class Response(BaseModel):  @classmethod from_domain(cls, dom) -> Response

respond() turns a service Result into the response model or raises
FailureError, which the app renders as ``{"detail": {"kind", "message"}}``.
"""

from __future__ import annotations

from typing import Any

from kungfu import Result, Ok, Error

from storefront.errors import Failure, FailureKind

STATUS_BY_KIND: dict[FailureKind, int] = {
    FailureKind.VALIDATION: 400,
    FailureKind.UNAUTHENTICATED: 401,
    FailureKind.FORBIDDEN: 403,
    FailureKind.NOT_FOUND: 404,
    FailureKind.CONFLICT: 409,
    FailureKind.INVALID_TRANSITION: 409,
    FailureKind.CANCELLED: 409,
    FailureKind.PARTIAL_FAILURE: 500,
    FailureKind.STORAGE: 500,
    FailureKind.PROVIDER: 502,
}


class FailureError(Exception):
    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.failure.kind]

    def body(self) -> dict[str, Any]:
        detail: dict[str, Any] = {
            "kind": self.failure.kind.name.lower(),
            "message": self.failure.message,
        }
        if self.failure.details and self.failure.kind is FailureKind.VALIDATION:
            detail["details"] = self.failure.details
        return {"detail": detail}


def unwrap[T](result: Result[T, Failure]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(failure):
            raise FailureError(failure)


def respond[T, R](result: Result[T, Failure], response: type[R]) -> R:
    return response.from_domain(unwrap(result))  # type: ignore[attr-defined,no-any-return]


__all__ = (
    "STATUS_BY_KIND",
    "FailureError",
    "unwrap",
    "respond",
)
