# PATH: core/exceptions.py
"""
Typed exceptions for TIERARB.

Errors fall into four groups:
- infrastructure (transient I/O, retried with backoff then surfaced)
- data integrity (bad pool state, unusable price, missing reserve,
  capacity breach: degrade with a warning in simulation, fail fast live)
- execution (assembly or submission problems)
- fatal (kill switch)

Economic rejections are NOT exceptions; see ValidationResult.
"""

from typing import Any, Optional

from core.constants import ErrorCode


class TierArbError(Exception):
    """Base exception for TIERARB."""

    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class InfraError(TierArbError):
    """Infrastructure-related errors (RPC, timeouts, signer process)."""
    default_code = ErrorCode.INFRA_RPC_ERROR


class SignerError(InfraError):
    """External signer failed before anything reached the chain."""
    default_code = ErrorCode.INFRA_SIGNER_ERROR


class ValidationError(TierArbError):
    """Malformed input to arithmetic or model construction."""
    default_code = ErrorCode.VALIDATION_ERROR


class ConfigError(TierArbError):
    """Invalid or incomplete configuration."""
    default_code = ErrorCode.CONFIG_ERROR


# =============================================================================
# DATA INTEGRITY
# =============================================================================

class DataIntegrityError(TierArbError):
    """On-chain data could not be trusted."""


class PoolError(DataIntegrityError):
    """Pool object missing or not shaped like a Cetus pool."""
    default_code = ErrorCode.POOL_NOT_FOUND


class InvalidPoolStateError(PoolError):
    """Pool state present but unusable (e.g. zero sqrt price)."""
    default_code = ErrorCode.POOL_INVALID_STATE


class PriceSanityError(DataIntegrityError):
    """Resolved price fell outside the sanity band."""
    default_code = ErrorCode.PRICE_SANITY_FAILED


class OrientationAmbiguousError(DataIntegrityError):
    """Orientation could only be guessed and guessing is not allowed."""
    default_code = ErrorCode.PRICE_ORIENTATION_AMBIGUOUS


class ReserveNotFoundError(DataIntegrityError):
    """No lending reserve matches the requested coin type."""
    default_code = ErrorCode.RESERVE_NOT_FOUND


class CapacityError(DataIntegrityError):
    """Requested principal exceeds what the reserve can lend."""
    default_code = ErrorCode.CAPACITY_EXCEEDED


# =============================================================================
# QUOTES / EXECUTION
# =============================================================================

class QuoteError(TierArbError):
    """A swap quote could not be computed."""
    default_code = ErrorCode.QUOTE_FAILED


class ExecutionError(TierArbError):
    """Bundle assembly or submission failed."""
    default_code = ErrorCode.EXECUTION_FAILED


class KillSwitchTriggered(TierArbError):
    """Consecutive failures crossed the threshold. The process must stop."""
    default_code = ErrorCode.KILL_SWITCH_TRIGGERED
