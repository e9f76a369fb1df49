# PATH: tests/conftest.py
"""
Pytest configuration and fixtures for TIERARB tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from chains.providers import SuiObject  # noqa: E402
from core.constants import SUI_COIN_TYPE, USDC_COIN_TYPE  # noqa: E402
from core.models import AssetInfo, AssetPair, FeeTierPools, ReserveConfig  # noqa: E402
from tests.factories import HIGH_POOL_ID, LOW_POOL_ID, MARKET_ID, pool_object  # noqa: E402


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture
def pair() -> AssetPair:
    return AssetPair(
        base=AssetInfo("SUI", SUI_COIN_TYPE, 9),
        quote=AssetInfo("USDC", USDC_COIN_TYPE, 6),
    )


@pytest.fixture
def fee_tier_pools() -> FeeTierPools:
    return FeeTierPools(low_fee_pool_id=LOW_POOL_ID, high_fee_pool_id=HIGH_POOL_ID)


@pytest.fixture
def objects() -> dict[str, SuiObject]:
    """Mutable object store behind the fake provider. Low-fee pool priced 2% rich."""
    return {
        LOW_POOL_ID: pool_object(LOW_POOL_ID, "0.3774", fee_rate=500),
        HIGH_POOL_ID: pool_object(HIGH_POOL_ID, "0.37", fee_rate=2500),
    }


@pytest.fixture
def provider(objects) -> MagicMock:
    """SuiRPCProvider stand-in serving objects from the store."""
    mock = MagicMock()
    mock.get_object = AsyncMock(side_effect=lambda object_id: objects[object_id])
    return mock


@pytest.fixture
def sui_reserve() -> ReserveConfig:
    return ReserveConfig(
        reserve_key=f"{MARKET_ID}:0",
        coin_type=SUI_COIN_TYPE,
        fee_bps=5,
        available_amount=50_000 * 10**9,
        reserve_index=0,
    )
