"""
execution/rate_limiter.py - Submission rate gate.

Enforces a minimum interval between submissions and a cap on
submissions awaiting finality. Excess attempts are refused, never
queued.
"""

import time
from typing import Callable

from core.logging import get_logger

logger = get_logger(__name__)


class RateGate:
    """Min-interval plus max-pending admission control."""

    def __init__(
        self,
        min_interval_ms: int = 3000,
        max_pending: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval_ms = min_interval_ms
        self.max_pending = max_pending
        self._clock = clock
        self._last_submission: float | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        return self._pending

    def check(self) -> tuple[bool, str | None]:
        """
        Whether a new submission may start now.

        Returns:
            (allowed, refusal_reason)
        """
        if self._pending >= self.max_pending:
            return False, f"{self._pending} submissions pending (max {self.max_pending})"
        if self._last_submission is not None:
            elapsed_ms = (self._clock() - self._last_submission) * 1000
            if elapsed_ms < self.min_interval_ms:
                return False, f"{int(elapsed_ms)}ms since last submission (min {self.min_interval_ms}ms)"
        return True, None

    def try_acquire(self) -> bool:
        """Claim a submission slot, or refuse without waiting."""
        allowed, reason = self.check()
        if not allowed:
            logger.info("Submission refused by rate gate", extra={"context": {"reason": reason}})
            return False
        self._last_submission = self._clock()
        self._pending += 1
        return True

    def release(self) -> None:
        """Mark a claimed submission as settled (any outcome)."""
        if self._pending > 0:
            self._pending -= 1
