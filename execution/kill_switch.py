# PATH: execution/kill_switch.py
"""
Kill switch on consecutive failed submissions.

Only attempts that were actually submitted count. Validation rejections
and dry runs never touch the counter. A success resets it. Once the
count reaches the threshold the switch stays tripped until released.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.exceptions import KillSwitchTriggered
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class KillSwitchTrigger:
    """Kill switch trigger event."""
    timestamp: str
    reason: str
    details: Optional[str] = None


class KillSwitch:
    """Emergency stop after too many consecutive failed submissions."""

    def __init__(self, max_consecutive_failures: int = 3):
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1")
        self._max_consecutive_failures = max_consecutive_failures
        self._consecutive_failures = 0
        self._active = False
        self._triggers: List[KillSwitchTrigger] = []

    @property
    def is_active(self) -> bool:
        """Check if kill switch is triggered."""
        return self._active

    @property
    def can_execute(self) -> bool:
        return not self._active

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _trigger(self, reason: str, details: Optional[str] = None) -> None:
        self._active = True
        self._triggers.append(KillSwitchTrigger(
            timestamp=datetime.now(timezone.utc).isoformat(),
            reason=reason,
            details=details,
        ))
        logger.error(
            "Kill switch triggered",
            extra={"context": {"reason": reason, "details": details}},
        )

    def record_success(self) -> None:
        self._consecutive_failures = 0

    def record_failure(self, reason: str = "") -> bool:
        """
        Count a failed submitted attempt.

        Returns:
            True if the switch is now tripped
        """
        self._consecutive_failures += 1
        logger.warning(
            "Submitted attempt failed",
            extra={
                "context": {
                    "consecutive_failures": self._consecutive_failures,
                    "max_consecutive_failures": self._max_consecutive_failures,
                    "reason": reason,
                }
            },
        )
        if self._consecutive_failures >= self._max_consecutive_failures and not self._active:
            self._trigger(
                "CONSECUTIVE_FAILURES",
                f"{self._consecutive_failures} consecutive failed submissions",
            )
        return self._active

    def check(self) -> None:
        """Raise KillSwitchTriggered if tripped."""
        if self._active:
            last = self._triggers[-1] if self._triggers else None
            raise KillSwitchTriggered(
                "Kill switch is active, halting",
                details={
                    "reason": last.reason if last else None,
                    "consecutive_failures": self._consecutive_failures,
                },
            )

    def manual_trigger(self, reason: str = "MANUAL") -> None:
        self._trigger(reason, "Manually triggered")

    def release(self) -> None:
        """Release kill switch and reset the counter."""
        self._active = False
        self._consecutive_failures = 0

    def get_status(self) -> Dict[str, Any]:
        return {
            "active": self._active,
            "consecutive_failures": self._consecutive_failures,
            "max_consecutive_failures": self._max_consecutive_failures,
            "triggers": [
                {"timestamp": t.timestamp, "reason": t.reason, "details": t.details}
                for t in self._triggers
            ],
        }
