# PATH: execution/__init__.py
"""
TIERARB Execution Layer.

This package contains the execution layer components:
- transaction: programmable transaction bundle builder
- state_machine: attempt state machine with transitions
- kill_switch: halt after consecutive failed submissions
- rate_limiter: min-interval / max-pending submission gate
- submitter: external signer bridge, submission, finality polling
- sequencer: validate, assemble and submit one attempt

NOTE: sequencer is not imported here because it depends on the strategy
layer, which itself imports execution.transaction. Import it directly:

    from execution.sequencer import ArbitrageSequencer
"""

from execution.state_machine import (
    ArbState,
    ArbStateMachine,
    StateTransition,
    InvalidTransitionError,
    VALID_TRANSITIONS,
)
from execution.transaction import (
    GasCoin,
    NestedResult,
    ObjectArg,
    PureArg,
    Result,
    TransactionBuilder,
    TransactionBundle,
)
from execution.kill_switch import KillSwitch
from execution.rate_limiter import RateGate

__all__ = [
    # State machine
    "ArbState",
    "ArbStateMachine",
    "StateTransition",
    "InvalidTransitionError",
    "VALID_TRANSITIONS",
    # Transaction
    "GasCoin",
    "NestedResult",
    "ObjectArg",
    "PureArg",
    "Result",
    "TransactionBuilder",
    "TransactionBundle",
    # Guards
    "KillSwitch",
    "RateGate",
]
