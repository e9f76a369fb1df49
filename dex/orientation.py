"""
dex/orientation.py - Turn a raw sqrt price into a trustworthy USDC/SUI price.

A Cetus pool stores sqrt(P) in Q64.64 where P is coin B base units per
coin A base unit. Whether A is SUI or USDC decides whether the human
price is P * 10^shift or 10^shift / P, so every sqrt price has two
candidate meanings. The resolver picks one by applying ordered rules:

    1. TYPE_IDENTITY    a normalized coin type in either slot names a pair asset
    2. QUOTE_MATCH      one candidate agrees with an observed quote (cached)
    3. CACHED           a previous quote-match decision that has not expired
    4. SANITY_BAND      exactly one candidate falls inside [min, max]
       CENTER_PROXIMITY otherwise the candidate closest to the expected price

The returned price is always checked against the band. It is never
clamped: an out-of-band price raises PriceSanityError.
"""

import time
from decimal import Decimal, localcontext
from typing import Callable, Optional

from cachetools import TTLCache

from core.constants import (
    DEFAULT_EXPECTED_PRICE,
    DEFAULT_MAX_PRICE,
    DEFAULT_MIN_PRICE,
    DEFAULT_ORIENTATION_TTL_MS,
    QUOTE_MATCH_TOLERANCE,
    Confidence,
    Orientation,
    OrientationRule,
)
from core.exceptions import (
    InvalidPoolStateError,
    OrientationAmbiguousError,
    PriceSanityError,
    ValidationError,
)
from core.logging import get_logger
from core.math import sqrt_price_x64_to_price
from core.models import AssetPair, OrientationDecision, PoolMetadata, PriceCandidates, ResolvedPrice
from core.time import now_ms
from core.validators import check_price_band, normalize_coin_type

logger = get_logger(__name__)


def compute_price_candidates(
    sqrt_price_raw: int,
    decimals_x: int,
    decimals_y: int,
) -> PriceCandidates:
    """
    Both candidate prices (Y per X) for a raw Q64.64 sqrt price.

    a_is_x = P * 10^(dx - dy)
    a_is_y = 10^(dx - dy) / P

    Pure function. The exponent may be negative.
    """
    if sqrt_price_raw is None or isinstance(sqrt_price_raw, bool) or sqrt_price_raw <= 0:
        raise InvalidPoolStateError(
            f"Invalid sqrt price: {sqrt_price_raw}",
            details={"sqrt_price_raw": sqrt_price_raw},
        )

    raw_price = sqrt_price_x64_to_price(sqrt_price_raw)
    with localcontext() as ctx:
        ctx.prec = 60
        scale = Decimal(10) ** (decimals_x - decimals_y)
        return PriceCandidates(
            a_is_x=raw_price * scale,
            a_is_y=scale / raw_price,
        )


class OrientationCache:
    """
    Per-pool orientation decisions with a TTL.

    Entries are replaced, never mutated. A quote that disagrees with a
    cached decision overwrites it.
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_ORIENTATION_TTL_MS,
        maxsize: int = 64,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_ms / 1000, timer=timer)

    def get(self, pool_id: str) -> Optional[OrientationDecision]:
        return self._cache.get(pool_id)

    def put(self, decision: OrientationDecision) -> None:
        self._cache[decision.pool_id] = decision

    def invalidate(self, pool_id: str) -> None:
        self._cache.pop(pool_id, None)

    def __contains__(self, pool_id: str) -> bool:
        return pool_id in self._cache


class PriceOrientationResolver:
    """
    Resolve Y-per-X prices from pool sqrt prices.

    strict=True turns a CENTER_PROXIMITY guess (LOW confidence) into an
    OrientationAmbiguousError. Live mode runs strict.
    """

    def __init__(
        self,
        pair: AssetPair,
        cache: OrientationCache | None = None,
        min_price: Decimal = DEFAULT_MIN_PRICE,
        max_price: Decimal = DEFAULT_MAX_PRICE,
        expected_price: Decimal = DEFAULT_EXPECTED_PRICE,
        match_tolerance: Decimal = QUOTE_MATCH_TOLERANCE,
        strict: bool = False,
    ):
        if min_price <= 0 or max_price <= min_price:
            raise ValidationError(
                "Price band must satisfy 0 < min_price < max_price",
                details={"min_price": str(min_price), "max_price": str(max_price)},
            )
        self.pair = pair
        self.cache = cache if cache is not None else OrientationCache()
        self.min_price = min_price
        self.max_price = max_price
        self.expected_price = expected_price
        self.match_tolerance = match_tolerance
        self.strict = strict
        self._base_type = normalize_coin_type(pair.base.coin_type)
        self._quote_type = normalize_coin_type(pair.quote.coin_type)

    def resolve_pool(self, pool: PoolMetadata, quoted_price: Decimal | None = None) -> ResolvedPrice:
        """resolve_price for a pool snapshot."""
        return self.resolve_price(
            pool.pool_id,
            pool.current_sqrt_price,
            pool.coin_type_a,
            pool.coin_type_b,
            quoted_price=quoted_price,
        )

    def resolve_price(
        self,
        pool_id: str,
        sqrt_price_raw: int,
        coin_type_a: str | None,
        coin_type_b: str | None,
        quoted_price: Decimal | None = None,
    ) -> ResolvedPrice:
        """
        Resolve the pool price in quote units per base unit.

        Raises:
            InvalidPoolStateError: zero, negative or missing sqrt price
            PriceSanityError: resolved price outside the sanity band
            OrientationAmbiguousError: only a guess was possible and strict is set
        """
        candidates = compute_price_candidates(
            sqrt_price_raw, self.pair.base.decimals, self.pair.quote.decimals
        )

        orientation = self._by_type_identity(coin_type_a, coin_type_b)
        if orientation is not None:
            return self._finish(pool_id, candidates, orientation, Confidence.HIGH, OrientationRule.TYPE_IDENTITY)

        if quoted_price is not None:
            orientation = self._by_quote_match(pool_id, candidates, quoted_price)
            if orientation is not None:
                return self._finish(pool_id, candidates, orientation, Confidence.HIGH, OrientationRule.QUOTE_MATCH)

        orientation = self._by_cache(pool_id, candidates)
        if orientation is not None:
            return self._finish(pool_id, candidates, orientation, Confidence.HIGH, OrientationRule.CACHED)

        orientation, confidence, rule = self._by_band(candidates)
        if confidence is Confidence.LOW:
            context = {"pool_id": pool_id, **self._candidate_context(candidates)}
            if self.strict:
                raise OrientationAmbiguousError(
                    f"Cannot determine orientation for pool {pool_id}",
                    details=context,
                )
            logger.warning(
                "Orientation guessed from expected price (LOW confidence)",
                extra={"context": {**context, "chosen": orientation.value}},
            )
        return self._finish(pool_id, candidates, orientation, confidence, rule)

    # =========================================================================
    # RULES
    # =========================================================================

    def _by_type_identity(self, coin_type_a: str | None, coin_type_b: str | None) -> Optional[Orientation]:
        # One recognized slot is enough
        a = normalize_coin_type(coin_type_a) if coin_type_a and "::" in coin_type_a else None
        b = normalize_coin_type(coin_type_b) if coin_type_b and "::" in coin_type_b else None

        a_is_x = a == self._base_type or b == self._quote_type
        a_is_y = a == self._quote_type or b == self._base_type
        if a_is_x and not a_is_y:
            return Orientation.A_IS_X
        if a_is_y and not a_is_x:
            return Orientation.A_IS_Y
        return None

    def _by_quote_match(
        self,
        pool_id: str,
        candidates: PriceCandidates,
        quoted_price: Decimal,
    ) -> Optional[Orientation]:
        if quoted_price <= 0:
            return None

        deviations = {
            Orientation.A_IS_X: abs(candidates.a_is_x - quoted_price) / quoted_price,
            Orientation.A_IS_Y: abs(candidates.a_is_y - quoted_price) / quoted_price,
        }
        matching = [o for o, dev in deviations.items() if dev <= self.match_tolerance]
        if not matching:
            logger.debug(
                "Quoted price matches neither candidate",
                extra={"context": {"pool_id": pool_id, "quoted_price": str(quoted_price)}},
            )
            return None

        orientation = min(matching, key=lambda o: deviations[o])
        previous = self.cache.get(pool_id)
        if previous is not None and previous.orientation is not orientation:
            logger.warning(
                "Quote contradicts cached orientation, replacing",
                extra={
                    "context": {
                        "pool_id": pool_id,
                        "cached": previous.orientation.value,
                        "observed": orientation.value,
                    }
                },
            )
        self.cache.put(
            OrientationDecision(
                pool_id=pool_id,
                orientation=orientation,
                decided_at_ms=now_ms(),
                source_quote_price=quoted_price,
            )
        )
        return orientation

    def _by_cache(self, pool_id: str, candidates: PriceCandidates) -> Optional[Orientation]:
        decision = self.cache.get(pool_id)
        if decision is None:
            return None

        price = candidates.for_orientation(decision.orientation)
        if not self._in_band(price):
            logger.warning(
                "Cached orientation yields out-of-band price, dropping",
                extra={
                    "context": {
                        "pool_id": pool_id,
                        "orientation": decision.orientation.value,
                        "price": str(price),
                    }
                },
            )
            self.cache.invalidate(pool_id)
            return None
        return decision.orientation

    def _by_band(self, candidates: PriceCandidates) -> tuple[Orientation, Confidence, OrientationRule]:
        x_ok = self._in_band(candidates.a_is_x)
        y_ok = self._in_band(candidates.a_is_y)
        if x_ok and not y_ok:
            return Orientation.A_IS_X, Confidence.MEDIUM, OrientationRule.SANITY_BAND
        if y_ok and not x_ok:
            return Orientation.A_IS_Y, Confidence.MEDIUM, OrientationRule.SANITY_BAND

        dist_x = abs(candidates.a_is_x - self.expected_price)
        dist_y = abs(candidates.a_is_y - self.expected_price)
        orientation = Orientation.A_IS_X if dist_x <= dist_y else Orientation.A_IS_Y
        return orientation, Confidence.LOW, OrientationRule.CENTER_PROXIMITY

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _in_band(self, price: Decimal) -> bool:
        return self.min_price <= price <= self.max_price

    def _candidate_context(self, candidates: PriceCandidates) -> dict:
        return {
            "candidate_a_is_x": str(candidates.a_is_x),
            "candidate_a_is_y": str(candidates.a_is_y),
            "min_price": str(self.min_price),
            "max_price": str(self.max_price),
        }

    def _finish(
        self,
        pool_id: str,
        candidates: PriceCandidates,
        orientation: Orientation,
        confidence: Confidence,
        rule: OrientationRule,
    ) -> ResolvedPrice:
        price = candidates.for_orientation(orientation)
        passed, details = check_price_band(price, self.min_price, self.max_price)
        if not passed:
            raise PriceSanityError(
                f"Price {price} for pool {pool_id} outside sanity band",
                details={"pool_id": pool_id, "rule": rule.value, **details},
            )
        return ResolvedPrice(
            pool_id=pool_id,
            price=price,
            orientation=orientation,
            confidence=confidence,
            rule=rule,
            candidates=candidates,
        )
