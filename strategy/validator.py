"""
strategy/validator.py - Economic validation of a flash-loan round trip.

Validation always runs on FRESH quotes (caches bypassed). Decision-time
prices from earlier in the tick are never trusted as final.

Order is fixed and short-circuits:
    1. quote leg 1 (sell principal of base on the sell pool)
    2. leg 1 output <= 0            -> FIRST_SWAP_QUOTE_INVALID (leg 2 never quoted)
    3. quote leg 2 (buy base back on the buy pool with leg 1 output)
    4. leg 2 output <= 0            -> SECOND_SWAP_QUOTE_INVALID
    5. repay = principal + ceil(principal * fee_bps / 10_000)
    6. leg 2 output < repay + min_profit -> INSUFFICIENT_PROFIT with shortfall
    7. otherwise a complete ArbPlan

Rejections are returned, never raised.
"""

from decimal import Decimal

from core.constants import ArbDirection, ErrorCode
from core.exceptions import DataIntegrityError, InfraError, QuoteError
from core.logging import get_logger
from core.math import min_out, repay_amount
from core.models import ArbPlan, FeeTierPools, ValidationResult
from dex.cetus import CetusQuoter

logger = get_logger(__name__)


class ArbitrageValidator:
    """Validates a direction and principal against fresh quotes."""

    def __init__(
        self,
        quoter: CetusQuoter,
        pools: FeeTierPools,
        max_slippage_pct: Decimal,
    ):
        self.quoter = quoter
        self.pools = pools
        self.max_slippage_pct = max_slippage_pct

    async def validate(
        self,
        direction: ArbDirection,
        principal: int,
        min_profit: int,
        flash_fee_bps: int,
    ) -> ValidationResult:
        sell_pool, buy_pool = self.pools.legs(direction)
        context = {"direction": direction.value, "principal": principal}

        try:
            first = await self.quoter.quote_sell_base(sell_pool, principal, fresh=True)
        except (QuoteError, DataIntegrityError, InfraError) as e:
            return self._reject(ErrorCode.QUOTE_FAILED, f"First leg quote failed: {e.message}", leg=1, **context)

        if first.amount_out <= 0:
            return self._reject(
                ErrorCode.FIRST_SWAP_QUOTE_INVALID,
                "First leg quote returned no output",
                first_out=first.amount_out,
                **context,
            )

        try:
            second = await self.quoter.quote_buy_base(buy_pool, first.amount_out, fresh=True)
        except (QuoteError, DataIntegrityError, InfraError) as e:
            return self._reject(ErrorCode.QUOTE_FAILED, f"Second leg quote failed: {e.message}", leg=2, **context)

        if second.amount_out <= 0:
            return self._reject(
                ErrorCode.SECOND_SWAP_QUOTE_INVALID,
                "Second leg quote returned no output",
                first_out=first.amount_out,
                second_out=second.amount_out,
                **context,
            )

        repay = repay_amount(principal, flash_fee_bps)
        required = repay + min_profit
        if second.amount_out < required:
            return self._reject(
                ErrorCode.INSUFFICIENT_PROFIT,
                "Round trip does not cover repayment plus minimum profit",
                first_out=first.amount_out,
                second_out=second.amount_out,
                repay_amount=repay,
                min_profit=min_profit,
                shortfall=required - second.amount_out,
                **context,
            )

        plan = ArbPlan(
            direction=direction,
            principal=principal,
            sell_pool_id=sell_pool,
            buy_pool_id=buy_pool,
            first_swap_quote=first,
            second_swap_quote=second,
            flash_fee_bps=flash_fee_bps,
            repay_amount=repay,
            min_profit=min_profit,
            first_min_out=min_out(first.amount_out, self.max_slippage_pct),
        )
        logger.info("Round trip validated", extra={"context": plan.to_dict()})
        return ValidationResult(valid=True, plan=plan)

    @staticmethod
    def _reject(code: ErrorCode, reason: str, **details) -> ValidationResult:
        logger.info(f"Validation rejected: {reason}", extra={"context": {"code": code.value, **details}})
        return ValidationResult.reject(code, reason, **details)
