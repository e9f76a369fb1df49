"""
dex/pool_state.py - Cetus pool snapshots with a read-through TTL cache.

One PoolStateCache exists per process and is passed by reference to
every consumer. Entries are frozen PoolMetadata; a refetch replaces the
entry.
"""

import time
from typing import Callable

from cachetools import TTLCache

from chains.providers import SuiObject, SuiRPCProvider
from core.exceptions import ErrorCode, InvalidPoolStateError, PoolError
from core.logging import get_logger
from core.models import AssetPair, PoolMetadata
from core.time import monotonic_ms
from core.validators import coin_types_equal, normalize_coin_type, parse_type_args

logger = get_logger(__name__)


def _as_int(value, field_name: str, pool_id: str) -> int:
    # u128 fields arrive as decimal strings, sometimes wrapped as {"fields": {"bits": ..}}
    if isinstance(value, dict):
        value = (value.get("fields") or value).get("bits", value.get("value"))
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidPoolStateError(
            f"Pool {pool_id} field {field_name} is not an integer",
            details={"pool_id": pool_id, "field": field_name, "value": value},
        )


def parse_pool_object(obj: SuiObject, fetched_at_ms: int | None = None) -> PoolMetadata:
    """
    Build PoolMetadata from a Cetus Pool<A, B> object.

    Raises:
        PoolError: not a two-coin pool type
        InvalidPoolStateError: sqrt price missing, zero or malformed
    """
    type_args = parse_type_args(obj.type)
    if len(type_args) != 2:
        raise PoolError(
            f"Object {obj.object_id} is not a Pool<A, B>",
            details={"pool_id": obj.object_id, "type": obj.type},
        )

    fields = obj.fields
    raw_sqrt = fields.get("current_sqrt_price", fields.get("sqrt_price"))
    if raw_sqrt is None:
        raise InvalidPoolStateError(
            f"Pool {obj.object_id} has no sqrt price",
            details={"pool_id": obj.object_id},
        )
    sqrt_price = _as_int(raw_sqrt, "current_sqrt_price", obj.object_id)
    if sqrt_price <= 0:
        raise InvalidPoolStateError(
            f"Pool {obj.object_id} sqrt price is {sqrt_price}",
            details={"pool_id": obj.object_id, "sqrt_price": sqrt_price},
        )

    return PoolMetadata(
        pool_id=obj.object_id,
        coin_type_a=type_args[0],
        coin_type_b=type_args[1],
        fee_rate=_as_int(fields.get("fee_rate", 0), "fee_rate", obj.object_id),
        current_sqrt_price=sqrt_price,
        liquidity=_as_int(fields.get("liquidity", 0), "liquidity", obj.object_id),
        fetched_at_ms=fetched_at_ms if fetched_at_ms is not None else monotonic_ms(),
    )


def validate_pool_assets(pool: PoolMetadata, pair: AssetPair) -> None:
    """
    Require the pool to hold exactly the configured base and quote types.

    Look-alike assets (e.g. a different USDC deployment) are rejected
    because comparison is exact after normalization.
    """
    expected = {normalize_coin_type(pair.base.coin_type), normalize_coin_type(pair.quote.coin_type)}
    actual = {normalize_coin_type(pool.coin_type_a), normalize_coin_type(pool.coin_type_b)}
    if expected != actual:
        raise PoolError(
            f"Pool {pool.pool_id} does not trade {pair.base.symbol}/{pair.quote.symbol}",
            code=ErrorCode.POOL_ASSET_MISMATCH,
            details={
                "pool_id": pool.pool_id,
                "coin_type_a": pool.coin_type_a,
                "coin_type_b": pool.coin_type_b,
                "expected": sorted(expected),
            },
        )


def base_is_coin_a(pool: PoolMetadata, pair: AssetPair) -> bool:
    """True when slot A holds the base asset."""
    return coin_types_equal(pool.coin_type_a, pair.base.coin_type)


class PoolStateCache:
    """
    Read-through TTL cache of pool snapshots keyed by pool id.

    A miss (or fresh=True) fetches inline from RPC and replaces the entry.
    """

    def __init__(
        self,
        provider: SuiRPCProvider,
        ttl_ms: int = 2000,
        maxsize: int = 64,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_ms / 1000, timer=timer)
        self.hits = 0
        self.misses = 0

    async def get(self, pool_id: str, fresh: bool = False) -> PoolMetadata:
        """Get a pool snapshot, fetching when missing, expired or fresh=True."""
        if not fresh:
            cached = self._cache.get(pool_id)
            if cached is not None:
                self.hits += 1
                return cached

        self.misses += 1
        obj = await self.provider.get_object(pool_id)
        pool = parse_pool_object(obj)
        self._cache[pool_id] = pool
        logger.debug(
            "Pool state fetched",
            extra={
                "context": {
                    "pool_id": pool_id,
                    "sqrt_price": str(pool.current_sqrt_price),
                    "liquidity": str(pool.liquidity),
                    "fresh": fresh,
                }
            },
        )
        return pool

    def invalidate(self, pool_id: str | None = None) -> None:
        if pool_id is None:
            self._cache.clear()
        else:
            self._cache.pop(pool_id, None)

    def __len__(self) -> int:
        return len(self._cache)
