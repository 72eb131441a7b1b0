"""
Idempotency types — records and outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


class RecordState(Enum):
    """
    Lifecycle:
        PENDING → COMPLETED (success)
                → FAILED (error, only when the policy persists failures)
                → (deleted, so the caller may retry)
    """

    PENDING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass(frozen=True, slots=True)
class IdempotencyRecord[T]:
    """
    A stored idempotency record.

    input_hash fingerprints the original payload so a reused key
    with a different payload is caught instead of replayed.
    """

    key: str
    state: RecordState
    value: T | None
    error: str | None
    created_at: datetime
    expires_at: datetime | None
    input_hash: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


@dataclass(frozen=True, slots=True)
class IdempotencyResult[T]:
    value: T
    from_cache: bool
    key: str


class IdempotencyErrorKind(Enum):
    CONFLICT = auto()  # Same key still in flight
    TIMEOUT = auto()  # Waiting for pending timed out
    STORE_ERROR = auto()  # Storage backend error
    EXECUTION = auto()  # Wrapped operation failed
    INPUT_MISMATCH = auto()  # Key reused with a different payload


@dataclass(frozen=True, slots=True)
class IdempotencyError[E]:
    """
    original_error carries the wrapped operation's error for EXECUTION.
    """

    kind: IdempotencyErrorKind
    message: str
    original_error: E | None = None


__all__ = (
    "RecordState",
    "IdempotencyRecord",
    "IdempotencyResult",
    "IdempotencyError",
    "IdempotencyErrorKind",
)
