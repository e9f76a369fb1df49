# PATH: core/models.py
"""
Core data models for TIERARB.

Raw amounts are int base units, prices are Decimal. Value objects that
are shared through caches are frozen: a newer observation replaces an
entry, it never mutates one.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Optional

from core.constants import (
    ArbDirection,
    Confidence,
    ErrorCode,
    ExecutionStatus,
    FlashProvider,
    Orientation,
    OrientationRule,
)
from core.exceptions import ValidationError


@dataclass(frozen=True)
class AssetInfo:
    """One side of the traded pair."""
    symbol: str
    coin_type: str
    decimals: int

    def __post_init__(self):
        if self.decimals < 0 or self.decimals > 18:
            raise ValidationError(f"Invalid decimals for {self.symbol}: {self.decimals}")


@dataclass(frozen=True)
class AssetPair:
    """
    Base asset X and quote asset Y. Prices are always Y per X
    (USDC per SUI).
    """
    base: AssetInfo
    quote: AssetInfo

    @property
    def decimal_shift(self) -> int:
        return self.base.decimals - self.quote.decimals

    def swapped(self) -> "AssetPair":
        return AssetPair(base=self.quote, quote=self.base)


@dataclass(frozen=True)
class FeeTierPools:
    """The two pools of the same pair at different fee tiers."""
    low_fee_pool_id: str
    high_fee_pool_id: str

    def legs(self, direction: ArbDirection) -> tuple[str, str]:
        """(sell_pool_id, buy_pool_id) for a direction."""
        if direction is ArbDirection.LOW_TO_HIGH:
            return self.low_fee_pool_id, self.high_fee_pool_id
        return self.high_fee_pool_id, self.low_fee_pool_id


@dataclass(frozen=True)
class PoolMetadata:
    """Snapshot of a Cetus pool object."""
    pool_id: str
    coin_type_a: str
    coin_type_b: str
    fee_rate: int  # millionths (500 = 0.05%)
    current_sqrt_price: int  # Q64.64
    liquidity: int
    fetched_at_ms: int

    @property
    def fee_tier_bps(self) -> int:
        return self.fee_rate // 100

    @property
    def type_args(self) -> list[str]:
        return [self.coin_type_a, self.coin_type_b]


@dataclass(frozen=True)
class OrientationDecision:
    """Cached answer to "which slot holds the base asset" for one pool."""
    pool_id: str
    orientation: Orientation
    decided_at_ms: int
    source_quote_price: Optional[Decimal] = None


@dataclass(frozen=True)
class PriceCandidates:
    """The two possible prices a sqrt price can mean, Y per X."""
    a_is_x: Decimal
    a_is_y: Decimal

    def for_orientation(self, orientation: Orientation) -> Decimal:
        if orientation is Orientation.A_IS_X:
            return self.a_is_x
        return self.a_is_y


@dataclass(frozen=True)
class ResolvedPrice:
    """Output of the orientation resolver."""
    pool_id: str
    price: Decimal
    orientation: Orientation
    confidence: Confidence
    rule: OrientationRule
    candidates: PriceCandidates

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "price": str(self.price),
            "orientation": self.orientation.value,
            "confidence": self.confidence.value,
            "rule": self.rule.value,
            "candidate_a_is_x": str(self.candidates.a_is_x),
            "candidate_a_is_y": str(self.candidates.a_is_y),
        }


@dataclass(frozen=True)
class ReserveConfig:
    """Flash-loan terms of one lending reserve."""
    reserve_key: str
    coin_type: str
    fee_bps: int
    available_amount: int
    reserve_index: Optional[int] = None
    synthetic: bool = False

    def __post_init__(self):
        if self.fee_bps < 0:
            raise ValidationError(f"fee_bps must be >= 0, got {self.fee_bps}")
        if self.available_amount < 0:
            raise ValidationError(
                f"available_amount must be >= 0, got {self.available_amount}"
            )


@dataclass(frozen=True)
class QuoteResult:
    """A single-leg swap quote."""
    pool_id: str
    a2b: bool
    amount_in: int
    amount_out: int
    sqrt_price_limit: int
    price_impact: Decimal
    fetched_at_ms: int


@dataclass(frozen=True)
class ArbPlan:
    """
    Fully validated round trip.

    Leg 1 sells the borrowed base asset on sell_pool_id. Leg 2 buys it
    back on buy_pool_id. A new plan replaces an old one.
    """
    direction: ArbDirection
    principal: int
    sell_pool_id: str
    buy_pool_id: str
    first_swap_quote: QuoteResult
    second_swap_quote: QuoteResult
    flash_fee_bps: int
    repay_amount: int
    min_profit: int
    first_min_out: int

    @property
    def expected_profit(self) -> int:
        return self.second_swap_quote.amount_out - self.repay_amount

    @property
    def second_min_out(self) -> int:
        return self.repay_amount + self.min_profit

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "principal": self.principal,
            "sell_pool_id": self.sell_pool_id,
            "buy_pool_id": self.buy_pool_id,
            "first_out": self.first_swap_quote.amount_out,
            "first_min_out": self.first_min_out,
            "second_out": self.second_swap_quote.amount_out,
            "second_min_out": self.second_min_out,
            "flash_fee_bps": self.flash_fee_bps,
            "repay_amount": self.repay_amount,
            "min_profit": self.min_profit,
            "expected_profit": self.expected_profit,
        }


@dataclass
class ValidationResult:
    """
    Economic verdict on a candidate round trip.

    An unprofitable trade is a normal, expected outcome and is reported
    here with a code, never raised.
    """
    valid: bool
    plan: Optional[ArbPlan] = None
    code: Optional[ErrorCode] = None
    reason: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def reject(cls, code: ErrorCode, reason: str, **details: Any) -> "ValidationResult":
        return cls(valid=False, code=code, reason=reason, details=details)

    @property
    def shortfall(self) -> Optional[int]:
        return self.details.get("shortfall")


@dataclass
class ExecutionResult:
    """Outcome of one arbitrage attempt through the sequencer."""
    attempt_id: str
    status: ExecutionStatus
    plan: Optional[ArbPlan] = None
    provider: Optional[FlashProvider] = None
    digest: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    history: list[str] = field(default_factory=list)
    bundle: Optional[dict[str, Any]] = None
    submitted: bool = False

    @property
    def profit(self) -> int:
        if self.status is ExecutionStatus.CONFIRMED and self.plan is not None:
            return self.plan.expected_profit
        return 0

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["status"] = self.status.value
        result["provider"] = self.provider.value if self.provider else None
        result["error_code"] = self.error_code.value if self.error_code else None
        result["plan"] = self.plan.to_dict() if self.plan else None
        return result
