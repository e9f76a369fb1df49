#!/usr/bin/env python3
"""
strategy/jobs/run_bot.py - CLI entrypoint for the monitoring loop.

Usage:
    python -m strategy.jobs.run_bot                 # dry run
    python -m strategy.jobs.run_bot --live          # submit transactions
    python -m strategy.jobs.run_bot --once --log-level DEBUG
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

import click

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from core.constants import RunMode
from core.exceptions import ConfigError, InfraError, KillSwitchTriggered
from core.logging import get_logger, set_global_context, setup_logging
from core.math import raw_to_human
from strategy.components import Components, build_components, verify_startup
from strategy.config import StrategyConfig, load_strategy_config
from strategy.monitor import MonitoringLoop, SessionStats

logger = get_logger("tierarb.bot")

EXIT_FAILURE = 1
EXIT_CONFIG = 2


def install_signal_handlers(loop: MonitoringLoop) -> None:
    """Stop the loop after the current tick on SIGINT/SIGTERM."""

    def handle_shutdown(signum: int, frame: object) -> None:
        logger.info("Shutdown requested", extra={"context": {"signal": signum}})
        loop.request_shutdown()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)


async def run_bot(components: Components, loop: MonitoringLoop, once: bool = False) -> SessionStats:
    """Verify configured objects, then tick until shutdown."""
    config = components.config

    try:
        if config.verify_on_chain:
            await verify_startup(components)
        return await loop.run(max_ticks=1 if once else None)
    except KillSwitchTriggered:
        logger.error(
            "KILL SWITCH ACTIVATED. Shutting down.",
            extra={"context": {**components.kill_switch.get_status(), **loop.stats.get_summary()}},
        )
        raise
    finally:
        logger.info("RPC stats", extra={"context": components.provider.get_stats_summary()})
        await components.close()


def print_summary(config: StrategyConfig, summary: dict) -> None:
    base = config.pair.base
    profit = raw_to_human(summary["total_profit"], base.decimals)

    click.echo("\n" + "=" * 60)
    click.echo(f"TIERARB SESSION SUMMARY ({config.mode.value.upper()})")
    click.echo("=" * 60)
    click.echo(f"Duration: {summary['elapsed_seconds']} seconds")
    click.echo(f"Ticks: {summary['ticks']} ({summary['tick_errors']} errors)")
    click.echo(f"Confirmed opportunities: {summary['opportunities']}")
    click.echo(f"Executions: {summary['executions']}")
    click.echo(f"  simulated: {summary['simulated']}")
    click.echo(f"  rejected: {summary['rejections']}")
    click.echo(f"  submitted: {summary['submitted']}")
    click.echo(f"  successful: {summary['successes']}")
    click.echo(f"  failed: {summary['failures']}")
    click.echo(f"Total profit: {profit:.6f} {base.symbol}")
    click.echo(f"Success rate: {summary['success_rate']}%")
    click.echo("=" * 60)


@click.command()
@click.option("--live", is_flag=True, default=False, help="Sign and submit transactions (default: dry run)")
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
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option("--json-logs/--no-json-logs", default=True, help="Use JSON log format")
@click.option("--log-file", default=None, help="Also write logs to this file")
@click.option("--once", is_flag=True, default=False, help="Run a single tick and exit")
def main(
    live: bool,
    config_path: Optional[Path],
    log_level: str,
    json_logs: bool,
    log_file: Optional[str],
    once: bool,
) -> None:
    """
    TIERARB monitoring loop.

    Watches the two Cetus SUI/USDC fee-tier pools and executes flash-loan
    round trips when the spread is confirmed.
    """
    setup_logging(level=log_level, json_output=json_logs, log_file=log_file)

    try:
        config = load_strategy_config(config_path, mode=RunMode.LIVE if live else None)
        config.validate()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}", extra={"context": e.to_dict()})
        click.echo(f"Configuration error: {e.message}", err=True)
        for error in e.details.get("errors", []):
            click.echo(f"  - {error}", err=True)
        sys.exit(EXIT_CONFIG)

    set_global_context(service="tierarb-bot", version="0.3.0", mode=config.mode.value)
    logger.info("Starting TIERARB", extra={"context": config.to_dict()})
    if config.live:
        logger.warning("LIVE MODE: transactions will be signed and submitted")

    components = build_components(config)
    loop = components.monitoring_loop()
    install_signal_handlers(loop)

    exit_code = 0
    try:
        asyncio.run(run_bot(components, loop, once=once))
    except KillSwitchTriggered:
        exit_code = EXIT_FAILURE
    except ConfigError as e:
        logger.error(f"Startup verification failed: {e}", extra={"context": e.to_dict()})
        exit_code = EXIT_CONFIG
    except InfraError as e:
        logger.error(f"RPC unavailable: {e}", extra={"context": e.to_dict()})
        exit_code = EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Bot interrupted")

    print_summary(config, loop.stats.get_summary())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
