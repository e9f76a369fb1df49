"""
core - Core utilities and models for TIERARB.

This package contains:
- models.py: Data models (PoolMetadata, ReserveConfig, QuoteResult, ArbPlan)
- constants.py: Enums, on-chain identifiers and defaults
- exceptions.py: Typed exceptions with error codes
- math.py: Settlement arithmetic (no float)
- validators.py: Coin-type normalization and price band checks
- time.py: Clock helpers
- logging.py: Structured JSON logging
"""

from core.constants import (
    ArbDirection,
    Confidence,
    ErrorCode,
    ExecutionStatus,
    FlashProvider,
    Orientation,
    OrientationRule,
    RunMode,
    TxStatus,
)
from core.exceptions import (
    CapacityError,
    ConfigError,
    DataIntegrityError,
    ExecutionError,
    InfraError,
    InvalidPoolStateError,
    KillSwitchTriggered,
    OrientationAmbiguousError,
    PoolError,
    PriceSanityError,
    QuoteError,
    ReserveNotFoundError,
    SignerError,
    TierArbError,
    ValidationError,
)
from core.logging import get_logger, setup_logging
from core.models import (
    ArbPlan,
    AssetInfo,
    AssetPair,
    ExecutionResult,
    PoolMetadata,
    QuoteResult,
    ReserveConfig,
    ResolvedPrice,
    ValidationResult,
)

__all__ = [
    # Constants
    "ArbDirection",
    "Confidence",
    "ErrorCode",
    "ExecutionStatus",
    "FlashProvider",
    "Orientation",
    "OrientationRule",
    "RunMode",
    "TxStatus",
    # Exceptions
    "CapacityError",
    "ConfigError",
    "DataIntegrityError",
    "ExecutionError",
    "InfraError",
    "InvalidPoolStateError",
    "KillSwitchTriggered",
    "OrientationAmbiguousError",
    "PoolError",
    "PriceSanityError",
    "QuoteError",
    "ReserveNotFoundError",
    "SignerError",
    "TierArbError",
    "ValidationError",
    # Models
    "ArbPlan",
    "AssetInfo",
    "AssetPair",
    "ExecutionResult",
    "PoolMetadata",
    "QuoteResult",
    "ReserveConfig",
    "ResolvedPrice",
    "ValidationResult",
    # Logging
    "get_logger",
    "setup_logging",
]
