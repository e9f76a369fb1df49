"""
dex/cetus.py - Cetus CLMM quoting and swap call construction.

Quotes are computed from pool state with a single-range estimate: the
fee is deducted from the input first, then the swap moves along the
active liquidity without crossing ticks. With zero active liquidity the
spot price is used. On-chain min-out and sqrt-price limits protect the
bundle if reality deviates from the estimate.

QUOTE CONTRACT:
- amount_in / amount_out are raw base units (int)
- a2b=True swaps coin A for coin B (price moves down)
- quote(fresh=True) bypasses both the pool-state and quote caches
"""

import time
from decimal import Decimal, localcontext
from typing import Callable

from cachetools import TTLCache

from core.constants import (
    CETUS_FEE_RATE_DENOMINATOR,
    CETUS_MAX_SQRT_PRICE,
    CETUS_MIN_SQRT_PRICE,
    CLOCK_OBJECT_ID,
    Q64,
)
from core.exceptions import QuoteError, ValidationError
from core.logging import get_logger, log_quote
from core.math import safe_decimal
from core.models import AssetPair, PoolMetadata, QuoteResult
from core.time import monotonic_ms
from dex.pool_state import PoolStateCache, base_is_coin_a, validate_pool_assets
from execution.transaction import Argument, NestedResult, ObjectArg, PureArg, TransactionBuilder

logger = get_logger(__name__)


# =============================================================================
# PURE MATH
# =============================================================================

def amount_after_fee(amount_in: int, fee_rate: int) -> int:
    """Input left after the pool fee (fee_rate in millionths), rounded down."""
    return amount_in * (CETUS_FEE_RATE_DENOMINATOR - fee_rate) // CETUS_FEE_RATE_DENOMINATOR


def spot_output(sqrt_price: int, a2b: bool, amount: int) -> int:
    """Output at the current price with no price movement."""
    if a2b:
        return amount * sqrt_price * sqrt_price // (Q64 * Q64)
    return amount * Q64 * Q64 // (sqrt_price * sqrt_price)


def compute_swap_output(pool: PoolMetadata, a2b: bool, amount_in: int) -> tuple[int, int]:
    """
    Estimate (amount_out, sqrt_price_after) for an exact-input swap.

    Raises:
        QuoteError: the swap would push the price past Cetus bounds
    """
    if amount_in < 0:
        raise ValidationError(f"amount_in must be non-negative, got {amount_in}")

    s = pool.current_sqrt_price
    liquidity = pool.liquidity
    net_in = amount_after_fee(amount_in, pool.fee_rate)

    if net_in == 0:
        return 0, s
    if liquidity == 0:
        return spot_output(s, a2b, net_in), s

    if a2b:
        s_new = liquidity * s * Q64 // (liquidity * Q64 + net_in * s)
        out = liquidity * (s - s_new) // Q64
    else:
        s_new = s + net_in * Q64 // liquidity
        out = liquidity * Q64 * (s_new - s) // (s * s_new)

    if s_new < CETUS_MIN_SQRT_PRICE or s_new > CETUS_MAX_SQRT_PRICE:
        raise QuoteError(
            f"Swap of {amount_in} exhausts liquidity in pool {pool.pool_id}",
            details={"pool_id": pool.pool_id, "a2b": a2b, "amount_in": amount_in},
        )
    return max(out, 0), s_new


def price_impact(pool: PoolMetadata, a2b: bool, amount_in: int, amount_out: int) -> Decimal:
    """Shortfall of amount_out against the spot-price output, as a fraction."""
    spot = spot_output(pool.current_sqrt_price, a2b, amount_after_fee(amount_in, pool.fee_rate))
    if spot <= 0:
        return Decimal("0")
    return max(Decimal(spot - amount_out) / Decimal(spot), Decimal("0"))


def sqrt_price_limit(current_sqrt_price: int, a2b: bool, max_slippage_pct: Decimal | str) -> int:
    """
    Sqrt-price bound for a swap, clamped to Cetus limits.

    a2b moves the price down, so the limit is current * sqrt(1 - s);
    b2a moves it up, so the limit is current * sqrt(1 + s).
    """
    slippage = safe_decimal(max_slippage_pct) / Decimal(100)
    with localcontext() as ctx:
        ctx.prec = 60
        factor = (Decimal(1) - slippage) if a2b else (Decimal(1) + slippage)
        limit = int(Decimal(current_sqrt_price) * factor.sqrt())
    return min(max(limit, CETUS_MIN_SQRT_PRICE), CETUS_MAX_SQRT_PRICE)


# =============================================================================
# QUOTER
# =============================================================================

class CetusQuoter:
    """
    Quotes swaps on Cetus pools.

    Decision-time quotes may come from the short-TTL quote cache keyed by
    (a2b, pool_id, amount_in). Validation always passes fresh=True.
    """

    def __init__(
        self,
        pool_state: PoolStateCache,
        pair: AssetPair,
        max_slippage_pct: Decimal = Decimal("1.0"),
        quote_ttl_ms: int = 2000,
        maxsize: int = 256,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.pool_state = pool_state
        self.pair = pair
        self.max_slippage_pct = max_slippage_pct
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=quote_ttl_ms / 1000, timer=timer)

    async def quote(self, pool_id: str, a2b: bool, amount_in: int, fresh: bool = False) -> QuoteResult:
        """
        Quote an exact-input swap.

        Raises:
            QuoteError: non-positive input or liquidity exhausted
            PoolError / InfraError: pool state unavailable
        """
        if amount_in <= 0:
            raise QuoteError(
                f"Cannot quote non-positive amount {amount_in}",
                details={"pool_id": pool_id, "amount_in": amount_in},
            )

        key = (a2b, pool_id, amount_in)
        if not fresh:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        pool = await self.pool_state.get(pool_id, fresh=fresh)
        amount_out, _ = compute_swap_output(pool, a2b, amount_in)
        result = QuoteResult(
            pool_id=pool_id,
            a2b=a2b,
            amount_in=amount_in,
            amount_out=amount_out,
            sqrt_price_limit=sqrt_price_limit(pool.current_sqrt_price, a2b, self.max_slippage_pct),
            price_impact=price_impact(pool, a2b, amount_in, amount_out),
            fetched_at_ms=monotonic_ms(),
        )
        self._cache[key] = result
        log_quote(logger, pool_id, a2b, amount_in, amount_out, fresh)
        return result

    async def sell_base_a2b(self, pool_id: str) -> bool:
        """Swap direction flag for selling the base asset on this pool."""
        # Coin types never change for a pool, a cached snapshot is enough
        pool = await self.pool_state.get(pool_id)
        validate_pool_assets(pool, self.pair)
        return base_is_coin_a(pool, self.pair)

    async def quote_sell_base(self, pool_id: str, amount_in: int, fresh: bool = False) -> QuoteResult:
        """Quote base -> quote (e.g. SUI in, USDC out)."""
        a2b = await self.sell_base_a2b(pool_id)
        return await self.quote(pool_id, a2b, amount_in, fresh=fresh)

    async def quote_buy_base(self, pool_id: str, amount_in: int, fresh: bool = False) -> QuoteResult:
        """Quote quote -> base (e.g. USDC in, SUI out)."""
        a2b = not await self.sell_base_a2b(pool_id)
        return await self.quote(pool_id, a2b, amount_in, fresh=fresh)

    def clear(self) -> None:
        self._cache.clear()


# =============================================================================
# SWAP CALL CONSTRUCTION
# =============================================================================

class CetusSwapBuilder:
    """Appends Cetus swap calls to a transaction bundle."""

    def __init__(self, package_id: str, global_config_id: str):
        self.package_id = package_id
        self.global_config_id = global_config_id

    def add_swap(
        self,
        builder: TransactionBuilder,
        pool: PoolMetadata,
        a2b: bool,
        coin_in: Argument,
        amount: Argument | int,
        amount_limit: int,
        sqrt_limit: int,
        label: str = "swap",
    ) -> tuple[Argument, Argument]:
        """
        Append pool::swap and return (coin_out, coin_in_remainder).

        The empty side is a coin::zero of the output type.
        """
        type_a, type_b = pool.coin_type_a, pool.coin_type_b
        zero = builder.move_call(
            "0x2::coin::zero",
            type_arguments=[type_b if a2b else type_a],
            arguments=[],
            label=f"{label}_zero_out",
        )
        coin_a, coin_b = (coin_in, zero) if a2b else (zero, coin_in)
        amount_arg = PureArg("u64", amount) if isinstance(amount, int) else amount

        swap = builder.move_call(
            f"{self.package_id}::pool::swap",
            type_arguments=[type_a, type_b],
            arguments=[
                ObjectArg(self.global_config_id),
                ObjectArg(pool.pool_id),
                coin_a,
                coin_b,
                PureArg("bool", a2b),
                PureArg("bool", True),  # by_amount_in
                amount_arg,
                PureArg("u64", amount_limit),
                PureArg("u128", sqrt_limit),
                ObjectArg(CLOCK_OBJECT_ID),
            ],
            label=label,
        )
        out_a, out_b = NestedResult(swap.index, 0), NestedResult(swap.index, 1)
        return (out_b, out_a) if a2b else (out_a, out_b)
