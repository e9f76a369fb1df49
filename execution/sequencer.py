"""
execution/sequencer.py - Assemble and (optionally) submit one arbitrage attempt.

Every attempt follows the same sequence:

    1. resolve flash-loan terms (primary provider, fallback on exhaustion)
    2. validate on fresh quotes with that provider's fee
    3. refuse stale quotes
    4. assemble ONE atomic bundle:
         borrow -> swap 1 -> swap 2 -> split repay -> repay -> transfer rest
    5. dry run: log the preview and stop
       live:    rate gate, submit, poll finality

Nothing is borrowed unless validation passed, and the repay call always
consumes the handle produced by the borrow call of the same attempt.
"""

import uuid
from decimal import Decimal
from typing import Optional

from core.constants import ArbDirection, ErrorCode, ExecutionStatus, TxStatus
from core.exceptions import CapacityError, ExecutionError, InfraError, SignerError
from core.logging import get_logger, log_plan, log_trade
from core.models import ArbPlan, AssetPair, ExecutionResult, ValidationResult
from core.time import monotonic_ms
from dex.cetus import CetusSwapBuilder
from dex.pool_state import PoolStateCache
from execution.rate_limiter import RateGate
from execution.state_machine import ArbState, ArbStateMachine
from execution.submitter import ChainSubmitter
from execution.transaction import TransactionBuilder, TransactionBundle
from lending.flash_loans import FlashLoanProvider, FlashLoanRouter, FlashLoanTerms
from strategy.validator import ArbitrageValidator

logger = get_logger(__name__)


class ArbitrageSequencer:
    """
    Turns a direction and principal into an ExecutionResult.

    Live mode requires a submitter and a rate gate. Dry-run mode never
    touches either.
    """

    def __init__(
        self,
        router: FlashLoanRouter,
        validator: ArbitrageValidator,
        pool_state: PoolStateCache,
        swaps: CetusSwapBuilder,
        pair: AssetPair,
        wallet_address: str,
        gas_budget: int,
        max_quote_age_ms: int = 2000,
        live: bool = False,
        submitter: Optional[ChainSubmitter] = None,
        rate_gate: Optional[RateGate] = None,
    ):
        if live and (submitter is None or rate_gate is None):
            raise ValueError("Live sequencer needs a submitter and a rate gate")
        self.router = router
        self.validator = validator
        self.pool_state = pool_state
        self.swaps = swaps
        self.pair = pair
        self.wallet_address = wallet_address
        self.gas_budget = gas_budget
        self.max_quote_age_ms = max_quote_age_ms
        self.live = live
        self.submitter = submitter
        self.rate_gate = rate_gate

    async def execute(
        self,
        direction: ArbDirection,
        principal: int,
        min_profit: int,
    ) -> ExecutionResult:
        """
        Run one attempt.

        Raises:
            CapacityError: live capacity breach, before anything is borrowed
        """
        sm = ArbStateMachine(attempt_id=uuid.uuid4().hex)
        sm.transition_to(ArbState.VALIDATING)

        try:
            provider, terms = await self.router.prepare(principal, self.pair.base.coin_type)
        except CapacityError as e:
            sm.fail(e.message)
            raise
        except ExecutionError as e:
            sm.fail(e.message)
            return self._result(sm, ExecutionStatus.FAILED, error=e)

        validation = await self.validator.validate(direction, principal, min_profit, terms.fee_bps)
        if not validation.valid:
            sm.fail(validation.reason or "validation failed", {"code": validation.code.value})
            return self._rejected(sm, validation, terms)

        plan = validation.plan
        stale = self._stale_quote_age(plan)
        if stale is not None:
            sm.fail("quote stale", {"age_ms": stale})
            return ExecutionResult(
                attempt_id=sm.attempt_id,
                status=ExecutionStatus.REJECTED,
                plan=plan,
                provider=terms.provider,
                error=f"Quote is {stale}ms old (max {self.max_quote_age_ms}ms)",
                error_code=ErrorCode.QUOTE_STALE,
                history=sm.path(),
            )

        log_plan(logger, sm.attempt_id, plan.to_dict(), provider=terms.provider.value, synthetic=terms.synthetic)

        try:
            bundle = await self.assemble(sm, plan, provider, terms)
        except ExecutionError as e:
            sm.fail(e.message)
            return self._result(sm, ExecutionStatus.FAILED, plan=plan, terms=terms, error=e)

        if not self.live:
            sm.transition_to(ArbState.SIMULATED, reason="dry run")
            logger.info(
                "Dry run: bundle assembled, not submitted",
                extra={
                    "context": {
                        "attempt_id": sm.attempt_id,
                        "commands": bundle.labels,
                        "repay_amount": plan.repay_amount,
                        "expected_profit": plan.expected_profit,
                    }
                },
            )
            return self._result(sm, ExecutionStatus.SIMULATED, plan=plan, terms=terms, bundle=bundle)

        return await self._submit(sm, plan, terms, bundle)

    async def assemble(
        self,
        sm: ArbStateMachine,
        plan: ArbPlan,
        provider: FlashLoanProvider,
        terms: FlashLoanTerms,
    ) -> TransactionBundle:
        """Build the atomic borrow/swap/swap/split/repay/transfer bundle."""
        builder = TransactionBuilder(sender=self.wallet_address, gas_budget=self.gas_budget)
        sell_pool = await self.pool_state.get(plan.sell_pool_id)
        buy_pool = await self.pool_state.get(plan.buy_pool_id)
        first, second = plan.first_swap_quote, plan.second_swap_quote

        sm.transition_to(ArbState.BORROWING)
        handle = provider.add_borrow(builder, terms, plan.principal)

        sm.transition_to(ArbState.SWAPPING_1)
        quote_coin, base_dust = self.swaps.add_swap(
            builder,
            sell_pool,
            first.a2b,
            handle.coin,
            plan.principal,
            plan.first_min_out,
            first.sqrt_price_limit,
            label="swap_1",
        )

        sm.transition_to(ArbState.SWAPPING_2)
        # Swap exactly what leg 1 produced, not the quoted estimate
        quote_type = sell_pool.coin_type_b if first.a2b else sell_pool.coin_type_a
        quote_amount = builder.move_call(
            "0x2::coin::value",
            type_arguments=[quote_type],
            arguments=[quote_coin],
            label="coin_value",
        )
        base_coin, quote_dust = self.swaps.add_swap(
            builder,
            buy_pool,
            second.a2b,
            quote_coin,
            quote_amount,
            plan.second_min_out,
            second.sqrt_price_limit,
            label="swap_2",
        )

        sm.transition_to(ArbState.SPLITTING)
        (repay_coin,) = builder.split_coins(base_coin, [plan.repay_amount], label="split_repay")

        sm.transition_to(ArbState.REPAYING)
        if handle.terms != terms or handle.provider is not provider.name:
            raise ExecutionError(
                "Borrow handle does not match the selected reserve",
                code=ErrorCode.REPAY_MISMATCH,
                details={"handle": handle.reserve_key, "terms": terms.reserve_key},
            )
        provider.add_repay(builder, handle, repay_coin)

        sm.transition_to(ArbState.TRANSFERRING)
        builder.transfer_objects([base_coin, base_dust, quote_dust], self.wallet_address, label="transfer_profit")

        return builder.build()

    async def _submit(
        self,
        sm: ArbStateMachine,
        plan: ArbPlan,
        terms: FlashLoanTerms,
        bundle: TransactionBundle,
    ) -> ExecutionResult:
        if not self.rate_gate.try_acquire():
            sm.fail("rate limited")
            return ExecutionResult(
                attempt_id=sm.attempt_id,
                status=ExecutionStatus.REJECTED,
                plan=plan,
                provider=terms.provider,
                error="Refused by rate gate",
                error_code=ErrorCode.RATE_LIMITED,
                history=sm.path(),
            )

        try:
            try:
                digest = await self.submitter.submit(bundle)
            except InfraError as e:
                sm.fail(f"submission failed: {e.message}")
                result = self._result(sm, ExecutionStatus.FAILED, plan=plan, terms=terms, error=e)
                # Signer failures happen before any bytes leave the process
                result.submitted = not isinstance(e, SignerError)
                log_trade(logger, sm.attempt_id, result.status.value, error=e.message)
                return result

            status = await self.submitter.wait_for_finality(digest)
        finally:
            self.rate_gate.release()

        if status is TxStatus.SUCCESS:
            sm.transition_to(ArbState.COMMITTED, reason="confirmed", metadata={"digest": digest})
            outcome = ExecutionStatus.CONFIRMED
        elif status is TxStatus.FAILURE:
            sm.fail("transaction failed on-chain", {"digest": digest})
            outcome = ExecutionStatus.FAILED
        else:
            outcome = ExecutionStatus.UNCONFIRMED

        result = self._result(sm, outcome, plan=plan, terms=terms, digest=digest)
        result.submitted = True
        log_trade(
            logger,
            sm.attempt_id,
            outcome.value,
            digest=digest,
            profit=plan.expected_profit if outcome is ExecutionStatus.CONFIRMED else None,
            provider=terms.provider.value,
        )
        return result

    def _stale_quote_age(self, plan: ArbPlan) -> Optional[int]:
        now = monotonic_ms()
        oldest = min(plan.first_swap_quote.fetched_at_ms, plan.second_swap_quote.fetched_at_ms)
        age = now - oldest
        return age if age > self.max_quote_age_ms else None

    def _rejected(
        self,
        sm: ArbStateMachine,
        validation: ValidationResult,
        terms: FlashLoanTerms,
    ) -> ExecutionResult:
        return ExecutionResult(
            attempt_id=sm.attempt_id,
            status=ExecutionStatus.REJECTED,
            provider=terms.provider,
            error=validation.reason,
            error_code=validation.code,
            history=sm.path(),
        )

    @staticmethod
    def _result(
        sm: ArbStateMachine,
        status: ExecutionStatus,
        plan: Optional[ArbPlan] = None,
        terms: Optional[FlashLoanTerms] = None,
        error: Optional[Exception] = None,
        digest: Optional[str] = None,
        bundle: Optional[TransactionBundle] = None,
    ) -> ExecutionResult:
        return ExecutionResult(
            attempt_id=sm.attempt_id,
            status=status,
            plan=plan,
            provider=terms.provider if terms else None,
            digest=digest,
            error=str(error) if error else None,
            error_code=getattr(error, "code", None),
            history=sm.path(),
            bundle=bundle.to_dict() if bundle else None,
        )


def format_plan(plan: ArbPlan, pair: AssetPair) -> list[str]:
    """Human-readable plan lines for operator output."""
    base, quote = pair.base, pair.quote

    def human(raw: int, decimals: int) -> str:
        return f"{Decimal(raw) / Decimal(10**decimals):f}"

    return [
        f"Direction:        {plan.direction.value}",
        f"Borrow:           {human(plan.principal, base.decimals)} {base.symbol}",
        f"Sell on:          {plan.sell_pool_id}",
        f"  expected out:   {human(plan.first_swap_quote.amount_out, quote.decimals)} {quote.symbol}",
        f"  min out:        {human(plan.first_min_out, quote.decimals)} {quote.symbol}",
        f"Buy back on:      {plan.buy_pool_id}",
        f"  expected out:   {human(plan.second_swap_quote.amount_out, base.decimals)} {base.symbol}",
        f"  min out:        {human(plan.second_min_out, base.decimals)} {base.symbol}",
        f"Flash fee:        {plan.flash_fee_bps} bps",
        f"Repay:            {human(plan.repay_amount, base.decimals)} {base.symbol}",
        f"Expected profit:  {human(plan.expected_profit, base.decimals)} {base.symbol}",
    ]
