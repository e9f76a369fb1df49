#!/usr/bin/env python3
"""
strategy/jobs/simulate.py - One-shot dry-run plan.

Reads both pools, quotes the first leg on each, picks the pool that pays
more for the borrowed base asset as the sell side, and runs the
sequencer in dry-run mode. Nothing is ever signed or submitted.

Usage:
    python -m strategy.jobs.simulate
    python -m strategy.jobs.simulate --amount 25 --json
"""

import asyncio
import json
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import click

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.constants import ArbDirection, ExecutionStatus, RunMode
from core.exceptions import ConfigError, TierArbError
from core.logging import get_logger, set_global_context, setup_logging
from core.math import calculate_spread_pct, human_to_raw
from core.models import ExecutionResult
from execution.sequencer import format_plan
from strategy.components import Components, build_components
from strategy.config import load_strategy_config

logger = get_logger("tierarb.simulate")


async def simulate(components: Components, principal: int) -> dict[str, Any]:
    """Quote both directions, then dry-run the better one."""
    config = components.config
    pools = config.pools

    low, high = await asyncio.gather(
        components.pool_state.get(pools.low_fee_pool_id, fresh=True),
        components.pool_state.get(pools.high_fee_pool_id, fresh=True),
    )
    low_price = components.resolver.resolve_pool(low)
    high_price = components.resolver.resolve_pool(high)

    reserve = await components.reserves.resolve_reserve(config.pair.base.coin_type)

    sell_low, sell_high = await asyncio.gather(
        components.quoter.quote_sell_base(pools.low_fee_pool_id, principal, fresh=True),
        components.quoter.quote_sell_base(pools.high_fee_pool_id, principal, fresh=True),
    )
    if sell_low.amount_out >= sell_high.amount_out:
        direction = ArbDirection.LOW_TO_HIGH
    else:
        direction = ArbDirection.HIGH_TO_LOW

    result = await components.sequencer.execute(direction, principal, config.min_profit)

    return {
        "prices": {
            "low_fee": low_price.to_dict(),
            "high_fee": high_price.to_dict(),
            "spread_pct": str(calculate_spread_pct(low_price.price, high_price.price)),
        },
        "reserve": {
            "reserve_key": reserve.reserve_key,
            "fee_bps": reserve.fee_bps,
            "available_amount": reserve.available_amount,
            "synthetic": reserve.synthetic,
        },
        "first_leg_out": {
            "low_fee": sell_low.amount_out,
            "high_fee": sell_high.amount_out,
        },
        "direction": direction.value,
        "result": result,
    }


def print_report(report: dict[str, Any], components: Components) -> None:
    config = components.config
    pair = config.pair
    prices = report["prices"]
    reserve = report["reserve"]
    result: ExecutionResult = report["result"]

    click.echo("=" * 60)
    click.echo("TIERARB SIMULATION (dry run, nothing submitted)")
    click.echo("=" * 60)
    for label, key in (("0.05%", "low_fee"), ("0.25%", "high_fee")):
        p = prices[key]
        click.echo(
            f"Cetus {label}: {Decimal(p['price']):.6f} {pair.quote.symbol}/{pair.base.symbol} "
            f"({p['orientation']}, {p['confidence']} via {p['rule']})"
        )
    click.echo(f"Spread: {Decimal(prices['spread_pct']):.4f}%")
    click.echo(
        f"Suilend reserve: {reserve['reserve_key']} fee {reserve['fee_bps']} bps"
        + (" [SYNTHETIC]" if reserve["synthetic"] else "")
    )
    click.echo("-" * 60)

    if result.plan is not None:
        for line in format_plan(result.plan, pair):
            click.echo(line)
    if result.provider is not None:
        click.echo(f"Provider:         {result.provider.value}")
    click.echo(f"Status:           {result.status.value}")
    if result.status is not ExecutionStatus.SIMULATED:
        code = result.error_code.value if result.error_code else "UNKNOWN"
        click.echo(f"Reason:           [{code}] {result.error}")
    if result.bundle is not None:
        click.echo("Commands:         " + " -> ".join(c["label"] for c in result.bundle["commands"]))
    click.echo("=" * 60)


@click.command()
@click.option("--amount", "-a", default=None, type=str, help="Principal in whole base units (e.g. 10 for 10 SUI)")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to strategy.yaml",
)
@click.option(
    "--log-level",
    "-l",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON")
def main(amount: Optional[str], config_path: Optional[Path], log_level: str, as_json: bool) -> None:
    """Print one dry-run plan for the current pool state."""
    setup_logging(level=log_level, json_output=False)
    set_global_context(service="tierarb-simulate", version="0.3.0")

    try:
        config = load_strategy_config(config_path, mode=RunMode.DRY_RUN)
        config.validate()
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        for error in e.details.get("errors", []):
            click.echo(f"  - {error}", err=True)
        sys.exit(2)

    principal = human_to_raw(amount, config.pair.base.decimals) if amount else config.principal
    components = build_components(config)

    async def _run() -> dict[str, Any]:
        try:
            return await simulate(components, principal)
        finally:
            await components.close()

    try:
        report = asyncio.run(_run())
    except TierArbError as e:
        logger.error(f"Simulation failed: {e}", extra={"context": e.to_dict()})
        click.echo(f"Simulation failed: {e}", err=True)
        sys.exit(1)

    if as_json:
        out = {**report, "result": report["result"].to_dict()}
        click.echo(json.dumps(out, indent=2, default=str))
    else:
        print_report(report, components)


if __name__ == "__main__":
    main()
