"""
strategy/spread.py - Fee-tier spread detection and confirmation.

A direction is only acted on after it has been observed on
consecutive_required ticks in a row. Any tick below the threshold, or a
flip of direction, restarts the count.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.constants import ArbDirection
from core.logging import get_logger
from core.math import calculate_spread_pct

logger = get_logger(__name__)


def determine_direction(
    low_fee_price: Decimal,
    high_fee_price: Decimal,
    min_spread_pct: Decimal,
) -> Optional[ArbDirection]:
    """
    Pick the direction for a pair of pool prices.

    Borrowed base is sold where it is worth more and bought back where it
    is cheaper. Returns None when the spread is below min_spread_pct.
    """
    spread = calculate_spread_pct(low_fee_price, high_fee_price)
    if spread < min_spread_pct or low_fee_price == high_fee_price:
        return None
    if low_fee_price > high_fee_price:
        return ArbDirection.LOW_TO_HIGH
    return ArbDirection.HIGH_TO_LOW


@dataclass(frozen=True)
class SpreadSignal:
    """One tick's view of the spread."""
    low_fee_price: Decimal
    high_fee_price: Decimal
    spread_pct: Decimal
    direction: Optional[ArbDirection]
    consecutive: int
    confirmed: bool
    direction_changed: bool

    def to_dict(self) -> dict:
        return {
            "low_fee_price": str(self.low_fee_price),
            "high_fee_price": str(self.high_fee_price),
            "spread_pct": str(self.spread_pct),
            "direction": self.direction.value if self.direction else None,
            "consecutive": self.consecutive,
            "confirmed": self.confirmed,
        }


class SpreadConfirmation:
    """Counts consecutive ticks that agree on a direction."""

    def __init__(self, min_spread_pct: Decimal, consecutive_required: int = 2):
        if consecutive_required < 1:
            raise ValueError("consecutive_required must be >= 1")
        self.min_spread_pct = Decimal(min_spread_pct)
        self.consecutive_required = consecutive_required
        self._direction: Optional[ArbDirection] = None
        self._count = 0

    @property
    def direction(self) -> Optional[ArbDirection]:
        return self._direction

    @property
    def count(self) -> int:
        return self._count

    def observe(self, low_fee_price: Decimal, high_fee_price: Decimal) -> SpreadSignal:
        spread = calculate_spread_pct(low_fee_price, high_fee_price)
        direction = determine_direction(low_fee_price, high_fee_price, self.min_spread_pct)

        changed = False
        if direction is None:
            self.reset()
        elif direction is self._direction:
            self._count += 1
        else:
            self._direction = direction
            self._count = 1
            changed = True

        signal = SpreadSignal(
            low_fee_price=low_fee_price,
            high_fee_price=high_fee_price,
            spread_pct=spread,
            direction=direction,
            consecutive=self._count,
            confirmed=direction is not None and self._count >= self.consecutive_required,
            direction_changed=changed,
        )
        logger.info(
            f"Fee-tier spread: {spread:.4f}% (min: {self.min_spread_pct}%)",
            extra={"context": signal.to_dict()},
        )
        return signal

    def reset(self) -> None:
        self._direction = None
        self._count = 0
