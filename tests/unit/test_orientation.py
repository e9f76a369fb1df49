"""
tests/unit/test_orientation.py - Tests for dex/orientation.py

Covers:
- candidate symmetry (swapping slots swaps the candidates)
- rule order: type identity, quote match, cache, band, center proximity
- strict mode on LOW confidence
- out-of-band prices raise, never clamp
"""

from decimal import Decimal

import pytest

from core.constants import SUI_COIN_TYPE, USDC_COIN_TYPE, Confidence, Orientation, OrientationRule
from core.exceptions import InvalidPoolStateError, OrientationAmbiguousError, PriceSanityError
from core.models import AssetInfo, AssetPair
from dex.orientation import OrientationCache, PriceOrientationResolver, compute_price_candidates
from tests.factories import LOW_POOL_ID as POOL, sqrt_price_for

TOL = Decimal("1e-12")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def close(a: Decimal, b: Decimal, rel: Decimal = TOL) -> bool:
    return abs(a - b) <= abs(b) * rel


class TestPriceCandidates:
    def test_a_is_sui(self):
        candidates = compute_price_candidates(sqrt_price_for("0.37", base_is_a=True), 9, 6)
        assert close(candidates.a_is_x, Decimal("0.37"))
        assert candidates.a_is_y > Decimal("1000")

    def test_a_is_usdc(self):
        candidates = compute_price_candidates(sqrt_price_for("0.37", base_is_a=False), 9, 6)
        assert close(candidates.a_is_y, Decimal("0.37"))
        assert candidates.a_is_x > Decimal("1000")

    def test_swapping_slots_swaps_candidates(self):
        for price in ("0.05", "0.37", "1.25", "4.9"):
            as_a = compute_price_candidates(sqrt_price_for(price, base_is_a=True), 9, 6)
            as_b = compute_price_candidates(sqrt_price_for(price, base_is_a=False), 9, 6)
            assert close(as_a.a_is_x, as_b.a_is_y, Decimal("1e-9"))
            assert close(as_a.a_is_y, as_b.a_is_x, Decimal("1e-9"))

    def test_candidates_are_reciprocal_up_to_scale(self):
        candidates = compute_price_candidates(123456789012345678, 9, 6)
        # a_is_x * a_is_y == 10^(2 * (dx - dy))
        assert close(candidates.a_is_x * candidates.a_is_y, Decimal(10) ** 6)

    def test_negative_exponent(self):
        candidates = compute_price_candidates(2**64, 6, 9)
        assert candidates.a_is_x == Decimal("0.001")
        assert candidates.a_is_y == Decimal("0.001")

    @pytest.mark.parametrize("bad", [0, -5, None])
    def test_invalid_sqrt_price(self, bad):
        with pytest.raises(InvalidPoolStateError):
            compute_price_candidates(bad, 9, 6)


class TestResolverRules:
    def test_type_identity_a_is_sui(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), SUI_COIN_TYPE, USDC_COIN_TYPE)
        assert resolved.orientation is Orientation.A_IS_X
        assert resolved.confidence is Confidence.HIGH
        assert resolved.rule is OrientationRule.TYPE_IDENTITY
        assert close(resolved.price, Decimal("0.37"))

    def test_type_identity_a_is_usdc(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(
            POOL, sqrt_price_for("0.37", base_is_a=False), USDC_COIN_TYPE, SUI_COIN_TYPE
        )
        assert resolved.orientation is Orientation.A_IS_Y
        assert close(resolved.price, Decimal("0.37"))

    def test_type_identity_uses_normalized_types(self, pair):
        resolver = PriceOrientationResolver(pair)
        long_sui = "0x" + "0" * 63 + "2::sui::SUI"
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), long_sui, USDC_COIN_TYPE)
        assert resolved.rule is OrientationRule.TYPE_IDENTITY

    def test_type_identity_from_slot_a_alone(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), SUI_COIN_TYPE, "0xabc::other::COIN")
        assert resolved.rule is OrientationRule.TYPE_IDENTITY
        assert resolved.confidence is Confidence.HIGH
        assert resolved.orientation is Orientation.A_IS_X

    def test_type_identity_from_slot_b_alone(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37", base_is_a=False), None, SUI_COIN_TYPE)
        assert resolved.rule is OrientationRule.TYPE_IDENTITY
        assert resolved.orientation is Orientation.A_IS_Y
        assert close(resolved.price, Decimal("0.37"))

    def test_one_known_slot_out_of_band_is_sanity_error(self, pair):
        resolver = PriceOrientationResolver(pair, strict=True)
        with pytest.raises(PriceSanityError):
            resolver.resolve_price(POOL, sqrt_price_for("7.5"), SUI_COIN_TYPE, "0xabc::other::COIN")

    def test_unknown_types_fall_through(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), "0xabc::other::COIN", "not-a-type")
        assert resolved.rule is OrientationRule.SANITY_BAND

    def test_swapping_slots_gives_same_price(self, pair):
        resolver = PriceOrientationResolver(pair)
        for price in ("0.05", "0.37", "1.25", "4.9"):
            as_a = resolver.resolve_price(POOL, sqrt_price_for(price, base_is_a=True), SUI_COIN_TYPE, USDC_COIN_TYPE)
            as_b = resolver.resolve_price(POOL, sqrt_price_for(price, base_is_a=False), USDC_COIN_TYPE, SUI_COIN_TYPE)
            assert as_a.orientation is Orientation.A_IS_X
            assert as_b.orientation is Orientation.A_IS_Y
            assert close(as_a.price, as_b.price, Decimal("1e-9"))
            assert close(as_a.price, Decimal(price), Decimal("1e-9"))

    def test_quote_match_when_types_unknown(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(
            POOL, sqrt_price_for("0.37", base_is_a=False), None, None, quoted_price=Decimal("0.365")
        )
        assert resolved.rule is OrientationRule.QUOTE_MATCH
        assert resolved.orientation is Orientation.A_IS_Y
        assert POOL in resolver.cache

    def test_cached_decision_reused(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolver.resolve_price(POOL, sqrt_price_for("0.37"), None, None, quoted_price=Decimal("0.37"))
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.38"), None, None)
        assert resolved.rule is OrientationRule.CACHED
        assert resolved.confidence is Confidence.HIGH
        assert close(resolved.price, Decimal("0.38"))

    def test_contradicting_quote_replaces_cache(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolver.resolve_price(POOL, sqrt_price_for("0.37"), None, None, quoted_price=Decimal("0.37"))
        assert resolver.cache.get(POOL).orientation is Orientation.A_IS_X

        resolver.resolve_price(
            POOL, sqrt_price_for("0.37", base_is_a=False), None, None, quoted_price=Decimal("0.37")
        )
        assert resolver.cache.get(POOL).orientation is Orientation.A_IS_Y

    def test_cache_expires(self, pair):
        clock = FakeClock()
        resolver = PriceOrientationResolver(pair, cache=OrientationCache(ttl_ms=60_000, timer=clock))
        resolver.resolve_price(POOL, sqrt_price_for("0.37"), None, None, quoted_price=Decimal("0.37"))
        clock.now = 61.0
        assert POOL not in resolver.cache
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), None, None)
        assert resolved.rule is OrientationRule.SANITY_BAND

    def test_sanity_band_medium_confidence(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), None, None)
        assert resolved.rule is OrientationRule.SANITY_BAND
        assert resolved.confidence is Confidence.MEDIUM
        assert resolved.orientation is Orientation.A_IS_X

    def test_center_proximity_when_both_in_band(self, pair):
        # With no decimal shift both candidates (2 and 0.5) sit inside the band
        equal_decimals = AssetPair(AssetInfo("X", "0xa::x::X", 6), AssetInfo("Y", "0xb::y::Y", 6))
        resolver = PriceOrientationResolver(equal_decimals)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("2", base_decimals=6), None, None)
        assert resolved.rule is OrientationRule.CENTER_PROXIMITY
        assert resolved.confidence is Confidence.LOW
        assert close(resolved.price, Decimal("0.5"))

    def test_center_proximity_strict_raises(self, pair):
        equal_decimals = AssetPair(AssetInfo("X", "0xa::x::X", 6), AssetInfo("Y", "0xb::y::Y", 6))
        resolver = PriceOrientationResolver(equal_decimals, strict=True)
        with pytest.raises(OrientationAmbiguousError):
            resolver.resolve_price(POOL, sqrt_price_for("2", base_decimals=6), None, None)


class TestSanity:
    def test_out_of_band_raises_not_clamps(self, pair):
        resolver = PriceOrientationResolver(pair)
        with pytest.raises(PriceSanityError) as exc_info:
            resolver.resolve_price(POOL, sqrt_price_for("7.5"), SUI_COIN_TYPE, USDC_COIN_TYPE)
        assert exc_info.value.details["side"] == "above"
        assert exc_info.value.details["rule"] == "TYPE_IDENTITY"

    def test_cached_out_of_band_is_dropped(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolver.resolve_price(POOL, sqrt_price_for("0.37"), None, None, quoted_price=Decimal("0.37"))
        # Same pool now reports a price whose cached reading is out of band
        resolver.resolve_price(POOL, sqrt_price_for("0.37", base_is_a=False), None, None)
        assert resolver.cache.get(POOL) is None

    def test_zero_sqrt_price(self, pair):
        resolver = PriceOrientationResolver(pair)
        with pytest.raises(InvalidPoolStateError):
            resolver.resolve_price(POOL, 0, SUI_COIN_TYPE, USDC_COIN_TYPE)

    def test_resolved_price_serializes(self, pair):
        resolver = PriceOrientationResolver(pair)
        resolved = resolver.resolve_price(POOL, sqrt_price_for("0.37"), SUI_COIN_TYPE, USDC_COIN_TYPE)
        data = resolved.to_dict()
        assert data["orientation"] == "A_IS_X"
        assert data["rule"] == "TYPE_IDENTITY"
