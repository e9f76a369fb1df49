# PATH: core/constants.py
"""
Constants for TIERARB.

Contains enums, defaults, and on-chain identifiers for the SUI/USDC
fee-tier arbitrage on Cetus.
"""

from decimal import Decimal
from enum import Enum
from typing import Final

# =============================================================================
# FIXED-POINT AND SETTLEMENT
# =============================================================================

BPS_DENOMINATOR: Final[int] = 10_000

# Cetus sqrt prices are Q64.64
Q64: Final[int] = 2**64

# Cetus fee_rate is expressed in millionths (500 = 0.05%)
CETUS_FEE_RATE_DENOMINATOR: Final[int] = 1_000_000

# Cetus swap sqrt-price bounds (tick -443636 / 443636)
CETUS_MIN_SQRT_PRICE: Final[int] = 4295048016
CETUS_MAX_SQRT_PRICE: Final[int] = 79226673515401279992447579055

# =============================================================================
# ASSETS
# =============================================================================

SUI_COIN_TYPE: Final[str] = "0x2::sui::SUI"
SUI_DECIMALS: Final[int] = 9

# Bridged USDC used by the two Cetus fee-tier pools
USDC_COIN_TYPE: Final[str] = (
    "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC"
)
USDC_DECIMALS: Final[int] = 6

# Look-alike USDC types that must never be accepted as the quote asset
NATIVE_USDC_COIN_TYPE: Final[str] = (
    "0xaf8cd5edc19637e05da0dd46f6ddb1a8b81cc532fcccf6d5d41ba77bba6eddd5::coin::COIN"
)
WORMHOLE_USDC_COIN_TYPE: Final[str] = (
    "0x5d4b302506645c37ff133b98c4b50a5ae14841659738d6d733d59d0d217a93bf::coin::COIN"
)

CLOCK_OBJECT_ID: Final[str] = "0x6"

# =============================================================================
# PRICE SANITY (USDC per SUI)
# =============================================================================

DEFAULT_MIN_PRICE: Final[Decimal] = Decimal("0.01")
DEFAULT_MAX_PRICE: Final[Decimal] = Decimal("5.0")
DEFAULT_EXPECTED_PRICE: Final[Decimal] = Decimal("0.37")

# Relative tolerance for matching a candidate price to an observed quote
QUOTE_MATCH_TOLERANCE: Final[Decimal] = Decimal("0.10")

DEFAULT_ORIENTATION_TTL_MS: Final[int] = 60_000

# =============================================================================
# FLASH-LOAN DEFAULTS
# =============================================================================

# Simulation-only reserve used when the Suilend reserve cannot be read
SYNTHETIC_RESERVE_FEE_BPS: Final[int] = 5
SYNTHETIC_RESERVE_AVAILABLE: Final[int] = 1_000_000_000_000_000

DEFAULT_NAVI_POOL_ID: Final[int] = 3
DEFAULT_NAVI_FEE_BPS: Final[int] = 6

# Bag pagination for reserve discovery
DYNAMIC_FIELD_PAGE_LIMIT: Final[int] = 50
DYNAMIC_FIELD_MAX_PAGES: Final[int] = 10


# =============================================================================
# ENUMS
# =============================================================================

class RunMode(str, Enum):
    """Process run mode."""
    LIVE = "live"
    DRY_RUN = "dry_run"


class Orientation(str, Enum):
    """
    Which pool slot holds the base asset X.

    A_IS_X: coin A is the base asset (SUI), coin B the quote asset (USDC).
    A_IS_Y: coin A is the quote asset, coin B the base asset.
    """
    A_IS_X = "A_IS_X"
    A_IS_Y = "A_IS_Y"

    @property
    def flipped(self) -> "Orientation":
        return Orientation.A_IS_Y if self is Orientation.A_IS_X else Orientation.A_IS_X


class Confidence(str, Enum):
    """Confidence attached to a resolved price."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class OrientationRule(str, Enum):
    """Which rule produced an orientation decision."""
    TYPE_IDENTITY = "TYPE_IDENTITY"
    QUOTE_MATCH = "QUOTE_MATCH"
    CACHED = "CACHED"
    SANITY_BAND = "SANITY_BAND"
    CENTER_PROXIMITY = "CENTER_PROXIMITY"


class ArbDirection(str, Enum):
    """
    Round-trip direction between the two fee-tier pools.

    The value reads "<sell pool> to <buy pool>": borrowed SUI is sold for
    USDC on the first pool and bought back on the second.
    """
    LOW_TO_HIGH = "low-to-high"
    HIGH_TO_LOW = "high-to-low"

    @property
    def reversed(self) -> "ArbDirection":
        if self is ArbDirection.LOW_TO_HIGH:
            return ArbDirection.HIGH_TO_LOW
        return ArbDirection.LOW_TO_HIGH


class FlashProvider(str, Enum):
    """Flash-loan providers, in default preference order."""
    SUILEND = "suilend"
    NAVI = "navi"


class TxStatus(str, Enum):
    """On-chain finality status of a submitted transaction."""
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


class ExecutionStatus(str, Enum):
    """Outcome of one arbitrage attempt."""
    REJECTED = "REJECTED"
    SIMULATED = "SIMULATED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    UNCONFIRMED = "UNCONFIRMED"


class ErrorCode(str, Enum):
    """Machine-readable error and rejection codes."""
    # Infrastructure
    INFRA_RPC_ERROR = "INFRA_RPC_ERROR"
    INFRA_TIMEOUT = "INFRA_TIMEOUT"
    INFRA_SIGNER_ERROR = "INFRA_SIGNER_ERROR"

    # Pool / price data
    POOL_NOT_FOUND = "POOL_NOT_FOUND"
    POOL_INVALID_STATE = "POOL_INVALID_STATE"
    POOL_ASSET_MISMATCH = "POOL_ASSET_MISMATCH"
    PRICE_SANITY_FAILED = "PRICE_SANITY_FAILED"
    PRICE_ORIENTATION_AMBIGUOUS = "PRICE_ORIENTATION_AMBIGUOUS"

    # Quotes / validation
    QUOTE_FAILED = "QUOTE_FAILED"
    QUOTE_STALE = "QUOTE_STALE"
    FIRST_SWAP_QUOTE_INVALID = "FIRST_SWAP_QUOTE_INVALID"
    SECOND_SWAP_QUOTE_INVALID = "SECOND_SWAP_QUOTE_INVALID"
    INSUFFICIENT_PROFIT = "INSUFFICIENT_PROFIT"

    # Flash loans
    RESERVE_NOT_FOUND = "RESERVE_NOT_FOUND"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    FLASHLOAN_UNAVAILABLE = "FLASHLOAN_UNAVAILABLE"

    # Execution
    EXECUTION_FAILED = "EXECUTION_FAILED"
    REPAY_MISMATCH = "REPAY_MISMATCH"
    RATE_LIMITED = "RATE_LIMITED"
    KILL_SWITCH_TRIGGERED = "KILL_SWITCH_TRIGGERED"

    # Input / config
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    UNKNOWN = "UNKNOWN"
