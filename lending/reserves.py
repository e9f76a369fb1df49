"""
lending/reserves.py - Locate a lending market's reserve for a coin type.

The Suilend market object exposes its reserves either as a vector of
Reserve<T> structs or, on some deployments, behind a Bag of dynamic
fields. Reserve entries do not agree on where the coin type lives, so
extraction tries independent strategies in a fixed order and the first
one that yields a value wins:

    1. coin_type.fields.name
    2. coin_type.name
    3. coin_type as a plain string
    4. the T in the entry's "...::reserve::Reserve<T>" struct type

All coin-type comparisons use normalize_coin_type. Substring matching
is never used.

In simulation mode a lookup failure degrades to a synthetic reserve
(flagged synthetic=True, logged loudly). In live mode it raises.
"""

import re
from typing import Any, Callable, Optional

from chains.providers import SuiRPCProvider
from core.constants import (
    DYNAMIC_FIELD_MAX_PAGES,
    DYNAMIC_FIELD_PAGE_LIMIT,
    SYNTHETIC_RESERVE_AVAILABLE,
    SYNTHETIC_RESERVE_FEE_BPS,
)
from core.exceptions import InfraError, PoolError, ReserveNotFoundError
from core.logging import get_logger
from core.models import ReserveConfig
from core.validators import normalize_coin_type

logger = get_logger(__name__)

_RESERVE_TYPE_RE = re.compile(r"::reserve::Reserve<(.+)>$")

FEE_FIELDS = ("borrow_fee", "borrow_fee_bps", "fee_bps")
BAG_FIELDS = ("reserves_bag", "reservesBag")


def _fields(entry: Any) -> dict[str, Any]:
    if isinstance(entry, dict):
        inner = entry.get("fields")
        return inner if isinstance(inner, dict) else entry
    return {}


# =============================================================================
# COIN-TYPE EXTRACTION STRATEGIES
# =============================================================================

def coin_type_from_nested_name(entry: Any) -> Optional[str]:
    coin_type = _fields(entry).get("coin_type")
    if isinstance(coin_type, dict):
        name = (coin_type.get("fields") or {}).get("name")
        if isinstance(name, str) and name:
            return name
    return None


def coin_type_from_name(entry: Any) -> Optional[str]:
    coin_type = _fields(entry).get("coin_type")
    if isinstance(coin_type, dict):
        name = coin_type.get("name")
        if isinstance(name, str) and name:
            return name
    return None


def coin_type_from_string(entry: Any) -> Optional[str]:
    coin_type = _fields(entry).get("coin_type")
    if isinstance(coin_type, str) and coin_type:
        return coin_type
    return None


def coin_type_from_struct_type(entry: Any) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    struct_type = entry.get("type")
    if not isinstance(struct_type, str):
        return None
    match = _RESERVE_TYPE_RE.search(struct_type)
    return match.group(1) if match else None


COIN_TYPE_STRATEGIES: tuple[Callable[[Any], Optional[str]], ...] = (
    coin_type_from_nested_name,
    coin_type_from_name,
    coin_type_from_string,
    coin_type_from_struct_type,
)


def extract_coin_type(entry: Any) -> Optional[str]:
    """First non-empty coin type from the ordered strategies."""
    for strategy in COIN_TYPE_STRATEGIES:
        coin_type = strategy(entry)
        if coin_type:
            return coin_type
    return None


def extract_fee_bps(entry: Any) -> Optional[int]:
    """Borrow fee in bps from the reserve config, if present."""
    config = _fields(entry).get("config")
    config_fields = _fields(config)
    # Suilend wraps the config in a Cell { element: ReserveConfig }
    if "element" in config_fields:
        config_fields = _fields(config_fields["element"])
    for name in FEE_FIELDS:
        value = config_fields.get(name)
        if value is not None:
            return int(value)
    return None


def parse_reserve_entry(entry: Any, index: Optional[int], market_id: str) -> Optional[ReserveConfig]:
    """
    ReserveConfig from one entry, or None when no coin type is found.

    Raises:
        ReserveNotFoundError: coin type found but fee or availability malformed
    """
    coin_type = extract_coin_type(entry)
    if coin_type is None:
        return None

    fields = _fields(entry)
    try:
        fee_bps = extract_fee_bps(entry)
        available = int(fields.get("available_amount", 0))
    except (TypeError, ValueError) as e:
        raise ReserveNotFoundError(
            f"Reserve {coin_type} has malformed fields",
            details={"coin_type": coin_type, "error": str(e)},
        )
    if fee_bps is None:
        raise ReserveNotFoundError(
            f"Reserve {coin_type} has no borrow fee",
            details={"coin_type": coin_type, "reserve_index": index},
        )

    return ReserveConfig(
        reserve_key=f"{market_id}:{index}" if index is not None else f"{market_id}:{coin_type}",
        coin_type=coin_type,
        fee_bps=fee_bps,
        available_amount=available,
        reserve_index=index,
    )


# =============================================================================
# RESOLVER
# =============================================================================

class ReserveConfigResolver:
    """
    Resolve the reserve (index, fee, availability) for a coin type in a
    lending market object.
    """

    def __init__(
        self,
        provider: SuiRPCProvider,
        market_id: str,
        live: bool,
        page_limit: int = DYNAMIC_FIELD_PAGE_LIMIT,
        max_pages: int = DYNAMIC_FIELD_MAX_PAGES,
    ):
        self.provider = provider
        self.market_id = market_id
        self.live = live
        self.page_limit = page_limit
        self.max_pages = max_pages

    async def resolve_reserve(self, coin_type: str) -> ReserveConfig:
        """
        Find the reserve lending coin_type.

        Raises:
            ReserveNotFoundError: live mode, no matching reserve
            InfraError: live mode, RPC unavailable
        """
        try:
            reserve = await self._lookup(coin_type)
        except (ReserveNotFoundError, PoolError, InfraError) as e:
            if self.live:
                raise
            return self._synthetic(coin_type, e)

        logger.info(
            "Reserve resolved",
            extra={
                "context": {
                    "coin_type": coin_type,
                    "reserve_index": reserve.reserve_index,
                    "fee_bps": reserve.fee_bps,
                    "available_amount": str(reserve.available_amount),
                }
            },
        )
        return reserve

    async def _lookup(self, coin_type: str) -> ReserveConfig:
        target = normalize_coin_type(coin_type)
        market = await self.provider.get_object(self.market_id)
        fields = market.fields

        reserves = fields.get("reserves")
        if isinstance(reserves, list):
            for index, entry in enumerate(reserves):
                reserve = self._match_entry(entry, index, target)
                if reserve is not None:
                    return reserve
        else:
            bag = reserves
            for name in BAG_FIELDS:
                if bag is None:
                    bag = fields.get(name)
            bag_id = self._bag_id(bag)
            if bag_id:
                reserve = await self._search_bag(bag_id, target)
                if reserve is not None:
                    return reserve

        raise ReserveNotFoundError(
            f"No reserve for {coin_type} in market {self.market_id}",
            details={"coin_type": coin_type, "market_id": self.market_id},
        )

    def _match_entry(self, entry: Any, index: Optional[int], target: str) -> Optional[ReserveConfig]:
        coin_type = extract_coin_type(entry)
        if not coin_type or "::" not in coin_type:
            return None
        if normalize_coin_type(coin_type) != target:
            return None
        return parse_reserve_entry(entry, index, self.market_id)

    @staticmethod
    def _bag_id(bag: Any) -> Optional[str]:
        bag_fields = _fields(bag)
        raw_id = bag_fields.get("id")
        if isinstance(raw_id, dict):
            return raw_id.get("id") or raw_id.get("value")
        if isinstance(raw_id, str):
            return raw_id
        return None

    async def _search_bag(self, bag_id: str, target: str) -> Optional[ReserveConfig]:
        cursor = None
        for _ in range(self.max_pages):
            page = await self.provider.get_dynamic_fields(bag_id, cursor=cursor, limit=self.page_limit)
            for item in page.entries:
                name = item.get("name") or {}
                obj = await self.provider.get_dynamic_field_object(bag_id, name)
                entry = obj.fields.get("value", obj.fields)
                index = _reserve_index(name)
                reserve = self._match_entry(entry, index, target)
                if reserve is not None:
                    return reserve
            if not page.has_next_page:
                return None
            cursor = page.next_cursor

        logger.warning(
            "Reserve bag pagination limit reached",
            extra={"context": {"bag_id": bag_id, "max_pages": self.max_pages}},
        )
        return None

    def _synthetic(self, coin_type: str, error: Exception) -> ReserveConfig:
        logger.warning(
            "!!! USING SYNTHETIC RESERVE (simulation only): real reserve unavailable !!!",
            extra={
                "context": {
                    "coin_type": coin_type,
                    "market_id": self.market_id,
                    "error": str(error),
                    "fee_bps": SYNTHETIC_RESERVE_FEE_BPS,
                    "available_amount": str(SYNTHETIC_RESERVE_AVAILABLE),
                }
            },
        )
        return ReserveConfig(
            reserve_key=f"{self.market_id}:synthetic",
            coin_type=coin_type,
            fee_bps=SYNTHETIC_RESERVE_FEE_BPS,
            available_amount=SYNTHETIC_RESERVE_AVAILABLE,
            reserve_index=0,
            synthetic=True,
        )


def _reserve_index(name: Any) -> Optional[int]:
    if isinstance(name, dict):
        value = name.get("value")
        if isinstance(value, (int, str)) and str(value).isdigit():
            return int(value)
    return None