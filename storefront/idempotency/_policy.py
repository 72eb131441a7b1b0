"""
Idempotency policy — how long keys live and what a second caller does while one is in flight.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum, auto


class OnPending(Enum):
    """
    What to do when a request arrives while another with the same key is in flight.

    WAIT: Poll until the first one settles, return its result.
          Use when: Same client retrying after a network timeout.

    FAIL: Return CONFLICT immediately.
          Use when: A double-click should be rejected, not queued.
    """

    WAIT = auto()
    FAIL = auto()


WAIT = OnPending.WAIT
FAIL = OnPending.FAIL


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Fluent, immutable. Each with_* returns a new Policy.

    Example:
        policy = (
            Policy()
            .with_ttl(hours=24)
            .with_on_pending(FAIL)
        )
    """

    result_ttl: timedelta | None = None
    conflict_strategy: OnPending = OnPending.WAIT
    pending_wait_timeout: timedelta = timedelta(seconds=30)
    poll_interval: float = 0.1
    # Off: failed attempts release the key so checkout can be retried.
    persist_failed: bool = False

    def with_ttl(
        self,
        *,
        seconds: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        if delta is not None:
            ttl_val: timedelta | None = delta
        else:
            total_seconds = (seconds or 0) + (hours or 0) * 3600
            ttl_val = timedelta(seconds=total_seconds) if total_seconds > 0 else None

        return Policy(
            result_ttl=ttl_val,
            conflict_strategy=self.conflict_strategy,
            pending_wait_timeout=self.pending_wait_timeout,
            poll_interval=self.poll_interval,
            persist_failed=self.persist_failed,
        )

    def with_on_pending(self, strategy: OnPending) -> Policy:
        return Policy(
            result_ttl=self.result_ttl,
            conflict_strategy=strategy,
            pending_wait_timeout=self.pending_wait_timeout,
            poll_interval=self.poll_interval,
            persist_failed=self.persist_failed,
        )

    def with_wait_timeout(self, *, seconds: float, poll_interval: float | None = None) -> Policy:
        """Only applies when on_pending=WAIT."""
        return Policy(
            result_ttl=self.result_ttl,
            conflict_strategy=self.conflict_strategy,
            pending_wait_timeout=timedelta(seconds=seconds),
            poll_interval=poll_interval if poll_interval is not None else self.poll_interval,
            persist_failed=self.persist_failed,
        )

    def with_store_failed(self, store: bool = True) -> Policy:
        return Policy(
            result_ttl=self.result_ttl,
            conflict_strategy=self.conflict_strategy,
            pending_wait_timeout=self.pending_wait_timeout,
            poll_interval=self.poll_interval,
            persist_failed=store,
        )


__all__ = ("OnPending", "WAIT", "FAIL", "Policy")
