"""
strategy/components.py - Wire the bot together from a StrategyConfig.

Both entry points (run_bot, simulate) build the same graph. The only
differences in live mode are strict orientation, fail-fast reserve
resolution, and a sequencer that holds a submitter and a rate gate.
"""

from dataclasses import dataclass
from typing import Optional

from chains.providers import SuiRPCProvider
from chains.verify import VerificationReport, require_objects
from core.logging import get_logger
from dex.cetus import CetusQuoter, CetusSwapBuilder
from dex.orientation import OrientationCache, PriceOrientationResolver
from dex.pool_state import PoolStateCache
from execution.kill_switch import KillSwitch
from execution.rate_limiter import RateGate
from execution.sequencer import ArbitrageSequencer
from execution.submitter import ChainSubmitter, SignerBridge
from lending.flash_loans import FlashLoanProvider, FlashLoanRouter, NaviFlashLoan, SuilendFlashLoan
from lending.reserves import ReserveConfigResolver
from notify.telegram import TelegramNotifier
from strategy.config import StrategyConfig
from strategy.monitor import MonitoringLoop
from strategy.spread import SpreadConfirmation
from strategy.validator import ArbitrageValidator

logger = get_logger(__name__)


@dataclass
class Components:
    config: StrategyConfig
    provider: SuiRPCProvider
    pool_state: PoolStateCache
    resolver: PriceOrientationResolver
    quoter: CetusQuoter
    reserves: ReserveConfigResolver
    router: FlashLoanRouter
    validator: ArbitrageValidator
    sequencer: ArbitrageSequencer
    kill_switch: KillSwitch
    notifier: TelegramNotifier
    rate_gate: Optional[RateGate] = None

    def monitoring_loop(self) -> MonitoringLoop:
        return MonitoringLoop(
            config=self.config,
            pool_state=self.pool_state,
            resolver=self.resolver,
            spread=SpreadConfirmation(
                self.config.min_spread_pct,
                self.config.consecutive_spread_required,
            ),
            sequencer=self.sequencer,
            kill_switch=self.kill_switch,
            notifier=self.notifier,
            rate_gate=self.rate_gate,
        )

    async def close(self) -> None:
        await self.notifier.close()
        await self.provider.close()


def build_components(config: StrategyConfig, provider: Optional[SuiRPCProvider] = None) -> Components:
    """Build every component for config.mode. Nothing touches the network here."""
    live = config.live
    provider = provider or SuiRPCProvider(list(config.rpc_urls), timeout_seconds=config.rpc_timeout_seconds)

    pool_state = PoolStateCache(provider, ttl_ms=config.price_cache_ttl_ms)
    band = config.price_band
    resolver = PriceOrientationResolver(
        config.pair,
        cache=OrientationCache(ttl_ms=config.orientation_ttl_ms),
        min_price=band.min_price,
        max_price=band.max_price,
        expected_price=band.expected_price,
        strict=config.strict,
    )
    quoter = CetusQuoter(
        pool_state,
        config.pair,
        max_slippage_pct=config.max_slippage_pct,
        quote_ttl_ms=config.price_cache_ttl_ms,
    )

    reserves = ReserveConfigResolver(provider, config.suilend.market_id, live=live)
    providers: list[FlashLoanProvider] = [
        SuilendFlashLoan(
            reserves,
            package_id=config.suilend.package_id,
            market_id=config.suilend.market_id,
            market_type=config.suilend.market_type,
            safety_buffer=config.safety_buffer,
            live=live,
        )
    ]
    if config.navi.enabled:
        providers.append(
            NaviFlashLoan(
                package_id=config.navi.package_id,
                storage_id=config.navi.storage_id,
                pool_id=config.navi.pool_id,
                fee_bps=config.navi.fee_bps,
            )
        )
    router = FlashLoanRouter(providers, max_retries=config.max_retries, retry_delay_ms=config.retry_delay_ms)

    validator = ArbitrageValidator(quoter, config.pools, config.max_slippage_pct)

    submitter = None
    rate_gate = None
    if live:
        submitter = ChainSubmitter(
            provider,
            SignerBridge(config.signer_command),
            poll_interval_ms=config.finality_poll_interval_ms,
            max_wait_ms=config.finality_max_wait_ms,
            max_retries=config.max_retries,
            retry_delay_ms=config.retry_delay_ms,
        )
        rate_gate = RateGate(min_interval_ms=config.tx_interval_ms, max_pending=config.max_pending_tx)

    sequencer = ArbitrageSequencer(
        router=router,
        validator=validator,
        pool_state=pool_state,
        swaps=CetusSwapBuilder(config.cetus.package_id, config.cetus.global_config_id),
        pair=config.pair,
        wallet_address=config.wallet_address or "0x0",
        gas_budget=config.gas_budget,
        max_quote_age_ms=config.max_quote_age_ms,
        live=live,
        submitter=submitter,
        rate_gate=rate_gate,
    )

    return Components(
        config=config,
        provider=provider,
        pool_state=pool_state,
        resolver=resolver,
        quoter=quoter,
        reserves=reserves,
        router=router,
        validator=validator,
        sequencer=sequencer,
        kill_switch=KillSwitch(config.max_consecutive_failures),
        notifier=TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id, pair=config.pair),
        rate_gate=rate_gate,
    )


async def verify_startup(components: Components) -> VerificationReport:
    """Check that the configured pools and markets exist on chain."""
    config = components.config
    objects = {
        "cetus.global_config": config.cetus.global_config_id,
        "cetus.low_fee_pool": config.cetus.low_fee_pool_id,
        "cetus.high_fee_pool": config.cetus.high_fee_pool_id,
        "suilend.market": config.suilend.market_id,
    }
    expected_types = {
        "cetus.low_fee_pool": "::pool::Pool<",
        "cetus.high_fee_pool": "::pool::Pool<",
    }
    if config.navi.enabled:
        objects["navi.storage"] = config.navi.storage_id
    return await require_objects(components.provider, objects, expected_types)
