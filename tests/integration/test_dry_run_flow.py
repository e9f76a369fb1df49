# PATH: tests/integration/test_dry_run_flow.py
"""
Integration tests for the dry-run path.

The full component graph is built from the shipped config and driven
against a fake RPC that serves the two pools and nothing else, so the
Suilend reserve degrades to a synthetic one.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from core.constants import ArbDirection, ExecutionStatus, FlashProvider, RunMode
from core.exceptions import InfraError
from strategy.components import build_components
from strategy.config import load_strategy_config
from strategy.jobs import simulate as simulate_job

pytestmark = pytest.mark.integration

TEN_SUI = 10 * 10**9


def _close_all_handlers():
    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)


@pytest.fixture
def fake_rpc(objects) -> MagicMock:
    async def get_object(object_id):
        if object_id not in objects:
            raise InfraError(f"All RPC endpoints failed for sui_getObject {object_id}")
        return objects[object_id]

    rpc = MagicMock()
    rpc.get_object = AsyncMock(side_effect=get_object)
    rpc.close = AsyncMock()
    return rpc


@pytest.fixture
def components(fake_rpc):
    config = load_strategy_config(env={}, mode=RunMode.DRY_RUN)
    return build_components(config, provider=fake_rpc)


class TestSimulate:
    async def test_profitable_direction_simulated(self, components):
        report = await simulate_job.simulate(components, TEN_SUI)

        assert report["direction"] == ArbDirection.LOW_TO_HIGH.value
        assert report["reserve"]["synthetic"] is True
        assert report["first_leg_out"]["low_fee"] > report["first_leg_out"]["high_fee"]

        result = report["result"]
        assert result.status is ExecutionStatus.SIMULATED
        assert result.submitted is False
        assert result.provider is FlashProvider.SUILEND
        assert result.plan.repay_amount == 10_005_000_000
        assert result.plan.expected_profit > 0

    async def test_bundle_order(self, components):
        report = await simulate_job.simulate(components, TEN_SUI)
        labels = [c["label"] for c in report["result"].bundle["commands"]]
        assert labels[0] == "flash_borrow"
        assert labels.index("swap_1") < labels.index("swap_2") < labels.index("flash_repay")
        assert labels[-1] == "transfer_profit"

    async def test_monitoring_loop_dry_run(self, fake_rpc):
        config = load_strategy_config(env={"CHECK_INTERVAL_MS": "0"}, mode=RunMode.DRY_RUN)
        components = build_components(config, provider=fake_rpc)
        loop = components.monitoring_loop()

        stats = await loop.run(max_ticks=2)

        assert stats.simulated == 1
        assert stats.submitted == 0
        assert components.kill_switch.consecutive_failures == 0


class TestSimulateCommand:
    def test_text_report(self, fake_rpc, monkeypatch):
        monkeypatch.setattr(simulate_job, "build_components", lambda config: build_components(config, provider=fake_rpc))
        runner = CliRunner()
        try:
            result = runner.invoke(simulate_job.main, ["--amount", "10", "--log-level", "ERROR"])
        finally:
            _close_all_handlers()

        assert result.exit_code == 0, result.output
        assert "TIERARB SIMULATION" in result.output
        assert "Status:           SIMULATED" in result.output
        assert "[SYNTHETIC]" in result.output
        fake_rpc.close.assert_awaited_once()
