# PATH: execution/state_machine.py
"""
TIERARB arbitrage attempt state machine.

EXECUTION STATE CONTRACT:
=========================

States (ArbState):
  IDLE          → attempt created
  VALIDATING    → provider terms resolved, fresh quotes validated
  BORROWING     → flash borrow added to the bundle
  SWAPPING_1    → sell leg added (base -> quote)
  SWAPPING_2    → buy-back leg added (quote -> base)
  SPLITTING     → repay amount split from the proceeds
  REPAYING      → flash repay added
  TRANSFERRING  → profit transfer added; bundle complete
  COMMITTED     → bundle confirmed on-chain
  SIMULATED     → dry run, bundle assembled but not submitted
  FAILED        → rejected, aborted, or failed on-chain

Transitions follow the list above in order. Any non-terminal state may
go to FAILED. TRANSFERRING ends in COMMITTED, SIMULATED or FAILED.
=========================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ArbState(str, Enum):
    """Arbitrage attempt states."""
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    BORROWING = "BORROWING"
    SWAPPING_1 = "SWAPPING_1"
    SWAPPING_2 = "SWAPPING_2"
    SPLITTING = "SPLITTING"
    REPAYING = "REPAYING"
    TRANSFERRING = "TRANSFERRING"
    COMMITTED = "COMMITTED"
    SIMULATED = "SIMULATED"
    FAILED = "FAILED"


TERMINAL_STATES = frozenset({ArbState.COMMITTED, ArbState.SIMULATED, ArbState.FAILED})

VALID_TRANSITIONS: Dict[ArbState, List[ArbState]] = {
    ArbState.IDLE: [ArbState.VALIDATING, ArbState.FAILED],
    ArbState.VALIDATING: [ArbState.BORROWING, ArbState.FAILED],
    ArbState.BORROWING: [ArbState.SWAPPING_1, ArbState.FAILED],
    ArbState.SWAPPING_1: [ArbState.SWAPPING_2, ArbState.FAILED],
    ArbState.SWAPPING_2: [ArbState.SPLITTING, ArbState.FAILED],
    ArbState.SPLITTING: [ArbState.REPAYING, ArbState.FAILED],
    ArbState.REPAYING: [ArbState.TRANSFERRING, ArbState.FAILED],
    ArbState.TRANSFERRING: [ArbState.COMMITTED, ArbState.SIMULATED, ArbState.FAILED],
    ArbState.COMMITTED: [],
    ArbState.SIMULATED: [],
    ArbState.FAILED: [],
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: ArbState
    to_state: ArbState
    timestamp: str = ""
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


@dataclass
class ArbStateMachine:
    """
    State machine for one arbitrage attempt.

    Tracks current state and transition history.
    """
    attempt_id: str
    state: ArbState = ArbState.IDLE
    history: List[StateTransition] = field(default_factory=list)
    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_transition_to(self, new_state: ArbState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition_to(
        self,
        new_state: ArbState,
        reason: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises InvalidTransitionError if transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}"
            )

        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            reason=reason,
            metadata=metadata or {},
        )
        self.history.append(transition)
        self.state = new_state
        return transition

    def fail(self, reason: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Move to FAILED unless already terminal."""
        if self.is_terminal:
            return
        self.failure_reason = reason
        self.transition_to(ArbState.FAILED, reason=reason, metadata=metadata)

    def path(self) -> List[str]:
        """States visited, starting from IDLE."""
        return [ArbState.IDLE.value] + [t.to_state.value for t in self.history]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "state": self.state.value,
            "failure_reason": self.failure_reason,
            "history": [
                {
                    "from": t.from_state.value,
                    "to": t.to_state.value,
                    "timestamp": t.timestamp,
                    "reason": t.reason,
                }
                for t in self.history
            ],
        }
