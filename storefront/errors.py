"""
Failure taxonomy shared by every service.

Services return ``Result[T, Failure]``; the kind decides how the caller
reacts (inline message, redirect to sign-in, retry checkout, ...).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class FailureKind(Enum):
    VALIDATION = auto()  # Bad coupon, card fields, missing checkout fields
    UNAUTHENTICATED = auto()  # No current user
    FORBIDDEN = auto()  # User lacks the role / feature disabled
    NOT_FOUND = auto()
    CONFLICT = auto()  # Duplicate submission, reference mismatch
    INVALID_TRANSITION = auto()  # State machine rejected the move
    PARTIAL_FAILURE = auto()  # Multi-step write rolled back
    PROVIDER = auto()  # Payment / wallet / LLM provider error
    CANCELLED = auto()  # User cancelled at the provider
    STORAGE = auto()  # Data backend error


@dataclass(frozen=True, slots=True)
class Failure:
    kind: FailureKind
    message: str
    cause: Exception | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class Failures:
    @staticmethod
    def validation(msg: str, **details: Any) -> Failure:
        return Failure(FailureKind.VALIDATION, msg, details=details or None)

    @staticmethod
    def unauthenticated(msg: str = "Authentication required") -> Failure:
        return Failure(FailureKind.UNAUTHENTICATED, msg)

    @staticmethod
    def forbidden(msg: str = "Not allowed") -> Failure:
        return Failure(FailureKind.FORBIDDEN, msg)

    @staticmethod
    def not_found(entity: str, ident: str) -> Failure:
        return Failure(
            FailureKind.NOT_FOUND,
            f"{entity} not found",
            details={"entity": entity, "id": ident},
        )

    @staticmethod
    def conflict(msg: str) -> Failure:
        return Failure(FailureKind.CONFLICT, msg)

    @staticmethod
    def invalid_transition(entity: str, src: str, dst: str) -> Failure:
        return Failure(
            FailureKind.INVALID_TRANSITION,
            f"Cannot move {entity} from {src} to {dst}",
            details={"from": src, "to": dst},
        )

    @staticmethod
    def partial_failure(msg: str, cause: Failure | Exception | None = None) -> Failure:
        details = {"cause": str(cause)} if cause is not None else None
        exc = cause if isinstance(cause, Exception) else None
        return Failure(FailureKind.PARTIAL_FAILURE, msg, cause=exc, details=details)

    @staticmethod
    def provider(msg: str, cause: Exception | None = None) -> Failure:
        return Failure(FailureKind.PROVIDER, msg, cause=cause)

    @staticmethod
    def cancelled(msg: str = "Payment was cancelled") -> Failure:
        return Failure(FailureKind.CANCELLED, msg)

    @staticmethod
    def storage(e: Exception) -> Failure:
        return Failure(FailureKind.STORAGE, f"Storage error: {e}", cause=e)


__all__ = ("FailureKind", "Failure", "Failures")
