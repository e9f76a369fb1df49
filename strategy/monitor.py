"""
strategy/monitor.py - The monitoring loop.

Each tick:
    1. refuse to run if the kill switch is tripped
    2. read both fee-tier pools and resolve their prices
    3. feed the spread into the confirmation counter
    4. on a confirmed direction, run one attempt through the sequencer
    5. update the kill switch from submitted outcomes and notify

Ticks never overlap: the next one starts check_interval_ms after the
previous one STARTED, or immediately if it ran longer than that.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from core.constants import ArbDirection, ExecutionStatus
from core.exceptions import CapacityError, DataIntegrityError, InfraError, KillSwitchTriggered, TierArbError
from core.logging import get_logger
from core.math import raw_to_human
from core.models import ExecutionResult
from dex.orientation import PriceOrientationResolver
from dex.pool_state import PoolStateCache, validate_pool_assets
from execution.kill_switch import KillSwitch
from execution.rate_limiter import RateGate
from execution.sequencer import ArbitrageSequencer
from notify.telegram import TelegramNotifier
from strategy.config import StrategyConfig
from strategy.spread import SpreadConfirmation, SpreadSignal

logger = get_logger(__name__)


@dataclass
class SessionStats:
    """Counters for one bot session."""
    started_at: datetime = field(default_factory=datetime.now)
    ticks: int = 0
    tick_errors: int = 0
    opportunities: int = 0
    executions: int = 0
    submitted: int = 0
    successes: int = 0
    failures: int = 0
    rejections: int = 0
    simulated: int = 0
    total_profit: int = 0
    last_digest: Optional[str] = None

    def record(self, result: ExecutionResult) -> None:
        self.executions += 1
        if result.submitted:
            self.submitted += 1
        if result.status is ExecutionStatus.CONFIRMED:
            self.successes += 1
            self.total_profit += result.profit
        elif result.status is ExecutionStatus.SIMULATED:
            self.simulated += 1
        elif result.status is ExecutionStatus.REJECTED:
            self.rejections += 1
        else:
            self.failures += 1
        if result.digest:
            self.last_digest = result.digest

    def get_summary(self) -> dict[str, Any]:
        elapsed = datetime.now() - self.started_at
        return {
            "session_start": self.started_at.isoformat(),
            "elapsed_seconds": int(elapsed.total_seconds()),
            "ticks": self.ticks,
            "tick_errors": self.tick_errors,
            "opportunities": self.opportunities,
            "executions": self.executions,
            "submitted": self.submitted,
            "successes": self.successes,
            "failures": self.failures,
            "rejections": self.rejections,
            "simulated": self.simulated,
            "total_profit": self.total_profit,
            "success_rate": round(self.successes / self.submitted * 100, 1) if self.submitted else 0,
        }


class MonitoringLoop:
    """Drives ticks until shutdown or the kill switch trips."""

    def __init__(
        self,
        config: StrategyConfig,
        pool_state: PoolStateCache,
        resolver: PriceOrientationResolver,
        spread: SpreadConfirmation,
        sequencer: ArbitrageSequencer,
        kill_switch: KillSwitch,
        notifier: Optional[TelegramNotifier] = None,
        rate_gate: Optional[RateGate] = None,
    ):
        self.config = config
        self.pool_state = pool_state
        self.resolver = resolver
        self.spread = spread
        self.sequencer = sequencer
        self.kill_switch = kill_switch
        self.notifier = notifier
        self.rate_gate = rate_gate
        self.stats = SessionStats()
        self._stop = asyncio.Event()

    @property
    def shutdown_requested(self) -> bool:
        return self._stop.is_set()

    def request_shutdown(self) -> None:
        self._stop.set()

    async def read_prices(self) -> SpreadSignal:
        """Read both pools, resolve prices and update the confirmation counter."""
        pools = self.config.pools
        low, high = await asyncio.gather(
            self.pool_state.get(pools.low_fee_pool_id),
            self.pool_state.get(pools.high_fee_pool_id),
        )
        validate_pool_assets(low, self.config.pair)
        validate_pool_assets(high, self.config.pair)

        low_price = self.resolver.resolve_pool(low).price
        high_price = self.resolver.resolve_pool(high).price
        return self.spread.observe(low_price, high_price)

    async def tick(self) -> Optional[ExecutionResult]:
        """
        Run one tick.

        Returns:
            The attempt's result, or None when nothing was attempted

        Raises:
            KillSwitchTriggered: the switch is (or just became) tripped
        """
        self.kill_switch.check()
        self.stats.ticks += 1

        try:
            signal = await self.read_prices()
        except (InfraError, DataIntegrityError) as e:
            # An unusable price never counts toward confirmation
            self.stats.tick_errors += 1
            self.spread.reset()
            logger.warning(f"Price read failed: {e}", extra={"context": e.to_dict()})
            return None

        if signal.direction is None:
            logger.debug("No fee-tier opportunity")
            return None

        if signal.direction_changed:
            await self._notify_opportunity(signal)

        if not signal.confirmed:
            logger.info(
                f"Waiting for confirmation ({signal.consecutive}/{self.spread.consecutive_required})",
                extra={"context": {"direction": signal.direction.value}},
            )
            return None

        if self.rate_gate is not None:
            allowed, reason = self.rate_gate.check()
            if not allowed:
                logger.info(f"Rate limited: {reason}")
                return None

        self.stats.opportunities += 1
        return await self._attempt(signal.direction)

    async def _attempt(self, direction: ArbDirection) -> Optional[ExecutionResult]:
        logger.info(f"=== EXECUTING FEE-TIER ARBITRAGE: {direction.value} ===")
        try:
            result = await self.sequencer.execute(direction, self.config.principal, self.config.min_profit)
        except CapacityError as e:
            # Nothing was borrowed or submitted
            self.stats.tick_errors += 1
            self.spread.reset()
            logger.error(f"Attempt refused: {e}", extra={"context": e.to_dict()})
            return None

        self.stats.record(result)

        if result.status is not ExecutionStatus.REJECTED:
            self.spread.reset()

        if result.submitted:
            if result.status is ExecutionStatus.CONFIRMED:
                self.kill_switch.record_success()
                logger.info(
                    f"Arbitrage confirmed: profit {raw_to_human(result.profit, self.config.pair.base.decimals)} "
                    f"{self.config.pair.base.symbol}",
                    extra={"context": {"digest": result.digest, "profit": result.profit}},
                )
            else:
                self.kill_switch.record_failure(result.error or result.status.value)
        elif result.status is ExecutionStatus.REJECTED:
            logger.info(
                f"Attempt rejected: {result.error_code.value if result.error_code else 'UNKNOWN'}",
                extra={"context": {"reason": result.error}},
            )

        if result.status is not ExecutionStatus.REJECTED and self.notifier is not None:
            await self.notifier.notify_execution_result(direction, result, dry_run=not self.config.live)

        if self.kill_switch.is_active:
            if self.notifier is not None:
                await self.notifier.notify_kill_switch(
                    f"{self.kill_switch.consecutive_failures} consecutive failed submissions. Shutting down."
                )
            self.kill_switch.check()

        return result

    async def _notify_opportunity(self, signal: SpreadSignal) -> None:
        if self.notifier is None:
            return
        pools = self.config.pools
        await self.notifier.notify_opportunity(
            signal.low_fee_price,
            signal.high_fee_price,
            signal.spread_pct,
            signal.direction,
            pools.low_fee_pool_id,
            pools.high_fee_pool_id,
        )

    async def run(self, max_ticks: Optional[int] = None) -> SessionStats:
        """
        Tick until shutdown, max_ticks, or the kill switch.

        Raises:
            KillSwitchTriggered
        """
        loop = asyncio.get_running_loop()
        interval = self.config.check_interval_ms / 1000
        count = 0

        while not self._stop.is_set():
            started = loop.time()
            try:
                await self.tick()
            except KillSwitchTriggered:
                raise
            except TierArbError as e:
                self.stats.tick_errors += 1
                logger.error(f"Error in fee-tier monitoring loop: {e}", extra={"context": e.to_dict()})

            count += 1
            if count % 10 == 0:
                logger.info("Session progress", extra={"context": self.stats.get_summary()})
            if max_ticks is not None and count >= max_ticks:
                break

            remaining = interval - (loop.time() - started)
            if remaining > 0:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass

        logger.info("Monitoring loop stopped", extra={"context": self.stats.get_summary()})
        return self.stats
