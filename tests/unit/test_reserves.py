"""
tests/unit/test_reserves.py - Tests for lending/reserves.py

Covers:
- Ordered coin-type extraction strategies
- Vector and Bag reserve layouts
- Simulation fallback to a synthetic reserve, live failure
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chains.providers import DynamicFieldPage, SuiObject
from core.constants import SUI_COIN_TYPE, SYNTHETIC_RESERVE_FEE_BPS, USDC_COIN_TYPE
from core.exceptions import InfraError, ReserveNotFoundError
from lending.reserves import (
    ReserveConfigResolver,
    coin_type_from_name,
    coin_type_from_nested_name,
    coin_type_from_string,
    coin_type_from_struct_type,
    extract_coin_type,
    extract_fee_bps,
    parse_reserve_entry,
)
from tests.factories import MARKET_ID

SUILEND_PACKAGE = "0xf95b06141ed4a174f239417323bde3f209b972f5930d8521ea38a52aff3a6ddf"
# TypeName strings come back without the 0x prefix and fully padded
SUI_TYPE_NAME = "0000000000000000000000000000000000000000000000000000000000000002::sui::SUI"
USDC_TYPE_NAME = USDC_COIN_TYPE[2:]
BAG_ID = "0x" + "b4" * 32


def reserve_entry(type_name: str, fee_bps: int | None = 5, available: int = 10**15) -> dict:
    config = {"fields": {"element": {"fields": {"borrow_fee_bps": str(fee_bps)}}}} if fee_bps is not None else {}
    return {
        "type": f"{SUILEND_PACKAGE}::reserve::Reserve<{SUILEND_PACKAGE}::suilend::MAIN_POOL>",
        "fields": {
            "coin_type": {"type": "0x1::type_name::TypeName", "fields": {"name": type_name}},
            "config": config,
            "available_amount": str(available),
        },
    }


def market(fields: dict) -> SuiObject:
    return SuiObject(object_id=MARKET_ID, type=f"{SUILEND_PACKAGE}::lending_market::LendingMarket", fields=fields)


def vector_provider(*entries) -> MagicMock:
    provider = MagicMock()
    provider.get_object = AsyncMock(return_value=market({"reserves": list(entries)}))
    return provider


class TestExtractionStrategies:
    def test_nested_name(self):
        assert coin_type_from_nested_name(reserve_entry(SUI_TYPE_NAME)) == SUI_TYPE_NAME

    def test_flat_name(self):
        entry = {"fields": {"coin_type": {"name": SUI_TYPE_NAME}}}
        assert coin_type_from_nested_name(entry) is None
        assert coin_type_from_name(entry) == SUI_TYPE_NAME

    def test_plain_string(self):
        entry = {"coin_type": "0x2::sui::SUI"}
        assert coin_type_from_string(entry) == "0x2::sui::SUI"

    def test_struct_type(self):
        entry = {"type": "0xabc::reserve::Reserve<0x2::sui::SUI>", "fields": {}}
        assert coin_type_from_struct_type(entry) == "0x2::sui::SUI"

    def test_first_strategy_wins(self):
        entry = {
            "type": f"0xabc::reserve::Reserve<{USDC_COIN_TYPE}>",
            "fields": {"coin_type": {"fields": {"name": SUI_TYPE_NAME}}},
        }
        assert extract_coin_type(entry) == SUI_TYPE_NAME

    def test_nothing_found(self):
        assert extract_coin_type({"fields": {"coin_type": 42}}) is None
        assert extract_coin_type("garbage") is None


class TestParseEntry:
    def test_fee_inside_cell(self):
        assert extract_fee_bps(reserve_entry(SUI_TYPE_NAME, fee_bps=9)) == 9

    def test_flat_fee(self):
        assert extract_fee_bps({"fields": {"config": {"fee_bps": 3}}}) == 3

    def test_parse(self):
        reserve = parse_reserve_entry(reserve_entry(SUI_TYPE_NAME, available=123), 4, MARKET_ID)
        assert reserve.reserve_key == f"{MARKET_ID}:4"
        assert reserve.fee_bps == 5
        assert reserve.available_amount == 123
        assert reserve.reserve_index == 4
        assert reserve.synthetic is False

    def test_missing_fee(self):
        with pytest.raises(ReserveNotFoundError):
            parse_reserve_entry(reserve_entry(SUI_TYPE_NAME, fee_bps=None), 0, MARKET_ID)

    def test_no_coin_type(self):
        assert parse_reserve_entry({"fields": {}}, 0, MARKET_ID) is None


class TestVectorLayout:
    async def test_finds_by_normalized_type(self):
        provider = vector_provider(reserve_entry(USDC_TYPE_NAME, fee_bps=7), reserve_entry(SUI_TYPE_NAME))
        resolver = ReserveConfigResolver(provider, MARKET_ID, live=True)
        reserve = await resolver.resolve_reserve("0x2::sui::SUI")
        assert reserve.reserve_index == 1
        assert reserve.fee_bps == 5
        assert reserve.reserve_key == f"{MARKET_ID}:1"

    async def test_malformed_unrelated_entry_ignored(self):
        provider = vector_provider(
            {"fields": {"coin_type": 42}},
            reserve_entry(USDC_TYPE_NAME, fee_bps=None),
            reserve_entry(SUI_TYPE_NAME),
        )
        resolver = ReserveConfigResolver(provider, MARKET_ID, live=True)
        reserve = await resolver.resolve_reserve(SUI_COIN_TYPE)
        assert reserve.reserve_index == 2

    async def test_lookalike_not_matched(self):
        lookalike = "0000000000000000000000000000000000000000000000000000000000000002::sui::SUIX"
        provider = vector_provider(reserve_entry(lookalike))
        resolver = ReserveConfigResolver(provider, MARKET_ID, live=True)
        with pytest.raises(ReserveNotFoundError):
            await resolver.resolve_reserve(SUI_COIN_TYPE)


class TestBagLayout:
    def bag_provider(self, pages: list[DynamicFieldPage], entries: dict[str, dict]) -> MagicMock:
        provider = MagicMock()
        provider.get_object = AsyncMock(
            return_value=market(
                {"reserves_bag": {"type": "0x2::bag::Bag", "fields": {"id": {"id": BAG_ID}, "size": str(len(entries))}}}
            )
        )
        provider.get_dynamic_fields = AsyncMock(side_effect=pages)
        provider.get_dynamic_field_object = AsyncMock(
            side_effect=lambda parent, name: SuiObject(
                object_id=parent, type="0x2::dynamic_field::Field", fields={"value": entries[name["value"]]}
            )
        )
        return provider

    async def test_paginates_until_found(self):
        pages = [
            DynamicFieldPage(entries=[{"name": {"type": "u64", "value": "0"}}], next_cursor="c1", has_next_page=True),
            DynamicFieldPage(entries=[{"name": {"type": "u64", "value": "1"}}], next_cursor=None, has_next_page=False),
        ]
        entries = {"0": reserve_entry(USDC_TYPE_NAME), "1": reserve_entry(SUI_TYPE_NAME, fee_bps=8)}
        provider = self.bag_provider(pages, entries)

        resolver = ReserveConfigResolver(provider, MARKET_ID, live=True)
        reserve = await resolver.resolve_reserve(SUI_COIN_TYPE)

        assert reserve.reserve_index == 1
        assert reserve.fee_bps == 8
        assert provider.get_dynamic_fields.await_count == 2
        assert provider.get_dynamic_fields.await_args_list[1].kwargs["cursor"] == "c1"

    async def test_page_limit(self):
        pages = [
            DynamicFieldPage(entries=[{"name": {"type": "u64", "value": str(i)}}], next_cursor=f"c{i}", has_next_page=True)
            for i in range(3)
        ]
        entries = {str(i): reserve_entry(USDC_TYPE_NAME) for i in range(3)}
        provider = self.bag_provider(pages, entries)

        resolver = ReserveConfigResolver(provider, MARKET_ID, live=True, max_pages=2)
        with pytest.raises(ReserveNotFoundError):
            await resolver.resolve_reserve(SUI_COIN_TYPE)
        assert provider.get_dynamic_fields.await_count == 2


class TestModes:
    async def test_simulation_falls_back_to_synthetic(self):
        resolver = ReserveConfigResolver(vector_provider(), MARKET_ID, live=False)
        reserve = await resolver.resolve_reserve(SUI_COIN_TYPE)
        assert reserve.synthetic is True
        assert reserve.fee_bps == SYNTHETIC_RESERVE_FEE_BPS
        assert reserve.reserve_index == 0

    async def test_simulation_survives_rpc_failure(self):
        provider = MagicMock()
        provider.get_object = AsyncMock(side_effect=InfraError("all endpoints down"))
        resolver = ReserveConfigResolver(provider, MARKET_ID, live=False)
        reserve = await resolver.resolve_reserve(SUI_COIN_TYPE)
        assert reserve.synthetic is True

    async def test_live_raises_not_found(self):
        resolver = ReserveConfigResolver(vector_provider(), MARKET_ID, live=True)
        with pytest.raises(ReserveNotFoundError):
            await resolver.resolve_reserve(SUI_COIN_TYPE)

    async def test_live_raises_rpc_failure(self):
        provider = MagicMock()
        provider.get_object = AsyncMock(side_effect=InfraError("all endpoints down"))
        resolver = ReserveConfigResolver(provider, MARKET_ID, live=True)
        with pytest.raises(InfraError):
            await resolver.resolve_reserve(SUI_COIN_TYPE)
