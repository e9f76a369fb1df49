# PATH: core/math.py
"""
Settlement arithmetic for TIERARB.

Raw amounts are int base units, prices and percentages are Decimal.
Float values are rejected everywhere (no float money).

Rounding rules:
- flash-loan fees round UP (never under-repay)
- slippage floors round DOWN (never over-promise output)
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext

from core.constants import BPS_DENOMINATOR, Q64
from core.exceptions import CapacityError, ValidationError
from core.logging import get_logger

logger = get_logger("tierarb.math")

# Slippage above this is almost certainly a configuration mistake
MAX_SLIPPAGE_PCT = Decimal("100")


# =============================================================================
# SAFE CONVERSIONS (NO FLOAT)
# =============================================================================

def safe_decimal(value: int | str | Decimal) -> Decimal:
    """
    Safely convert value to Decimal.

    Raises ValidationError if float is passed or conversion fails.
    """
    if isinstance(value, float):
        raise ValidationError(
            "Float values are not allowed. Use int, str, or Decimal.",
            details={"value": value, "type": type(value).__name__},
        )

    try:
        result = Decimal(value)
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValidationError(
            f"Cannot convert to Decimal: {value}",
            details={"value": value, "type": type(value).__name__, "error": str(e)},
        )
    if not result.is_finite():
        raise ValidationError(f"Non-finite value: {value}", details={"value": value})
    return result


def safe_int(value: int | str | Decimal) -> int:
    """
    Safely convert value to int (base units).

    Decimals are truncated toward zero. Booleans and floats are rejected.
    """
    if isinstance(value, (float, bool)):
        raise ValidationError(
            "Float values are not allowed. Use int, str, or Decimal.",
            details={"value": value, "type": type(value).__name__},
        )

    try:
        if isinstance(value, Decimal):
            return int(value.to_integral_value(rounding=ROUND_DOWN))
        return int(value)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise ValidationError(
            f"Cannot convert to int: {value}",
            details={"value": value, "type": type(value).__name__, "error": str(e)},
        )


def _require_amount(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{name} must be an int amount in base units",
            details={name: value, "type": type(value).__name__},
        )
    if value < 0:
        raise ValidationError(f"{name} must be non-negative", details={name: value})
    return value


# =============================================================================
# SETTLEMENT
# =============================================================================

def ceil_div(a: int, b: int) -> int:
    """Integer division rounding up, for non-negative a and positive b."""
    _require_amount("a", a)
    _require_amount("b", b)
    if b == 0:
        raise ValidationError("Division by zero in ceil_div")
    return (a + b - 1) // b


def flash_fee(principal: int, fee_bps: int) -> int:
    """Flash-loan fee in base units, rounded up."""
    _require_amount("principal", principal)
    _require_amount("fee_bps", fee_bps)
    return ceil_div(principal * fee_bps, BPS_DENOMINATOR)


def repay_amount(principal: int, fee_bps: int) -> int:
    """
    Amount owed back to the lender.

    repay = principal + ceil(principal * fee_bps / 10_000)

    Example: repay_amount(1_000_000_000_000, 5) -> 1_000_500_000_000
    """
    return principal + flash_fee(principal, fee_bps)


def min_out(expected_out: int, max_slippage_pct: int | str | Decimal) -> int:
    """
    Minimum acceptable output after slippage, rounded down.

    min_out = floor(expected_out * (10_000 - pct * 100) / 10_000)

    The percentage is applied as an exact fraction, so fractional
    percents such as "0.25" never lose precision.
    """
    _require_amount("expected_out", expected_out)
    pct = safe_decimal(max_slippage_pct)
    if pct < 0 or pct > MAX_SLIPPAGE_PCT:
        raise ValidationError(
            f"Slippage percent out of range: {pct}",
            details={"max_slippage_pct": str(pct)},
        )

    num, den = pct.as_integer_ratio()
    scale = 100 * den
    return expected_out * (scale - num) // scale


def assert_within_capacity(
    principal: int,
    available: int,
    safety_buffer: int,
    live: bool,
) -> bool:
    """
    Check a borrow against reserve capacity.

    Allowed when principal <= available - safety_buffer. A breach raises
    CapacityError in live mode and logs a warning in simulation.

    Returns:
        True when within capacity, False for a tolerated simulation breach
    """
    _require_amount("principal", principal)
    _require_amount("available", available)
    _require_amount("safety_buffer", safety_buffer)

    limit = available - safety_buffer
    if principal <= limit:
        return True

    details = {
        "principal": principal,
        "available": available,
        "safety_buffer": safety_buffer,
        "limit": limit,
    }
    if live:
        raise CapacityError(
            f"Borrow {principal} exceeds reserve capacity {limit}",
            details=details,
        )

    logger.warning(
        "Borrow exceeds reserve capacity (simulation, continuing)",
        extra={"context": details},
    )
    return False


# =============================================================================
# PRICES / SPREADS
# =============================================================================

def sqrt_price_x64_to_price(sqrt_price_raw: int) -> Decimal:
    """
    Raw pool price (coin B base units per coin A base unit) from a Q64.64
    sqrt price.
    """
    _require_amount("sqrt_price_raw", sqrt_price_raw)
    with localcontext() as ctx:
        ctx.prec = 60
        sqrt_p = Decimal(sqrt_price_raw) / Decimal(Q64)
        return sqrt_p * sqrt_p


def bps_to_decimal(bps: int | str | Decimal) -> Decimal:
    """
    Convert basis points to decimal multiplier.

    Example: 50 bps -> 0.005
    """
    return safe_decimal(bps) / Decimal(BPS_DENOMINATOR)


def calculate_spread_pct(price_a: Decimal, price_b: Decimal) -> Decimal:
    """
    Relative spread between two prices, in percent of the lower one.

    Example: (0.36, 0.365) -> 1.3888...
    """
    a = safe_decimal(price_a)
    b = safe_decimal(price_b)
    low = min(a, b)
    if low <= 0:
        raise ValidationError(
            "Spread requires positive prices",
            details={"price_a": str(a), "price_b": str(b)},
        )
    return abs(a - b) / low * Decimal(100)


def min_spread_required_pct(*fee_bps: int) -> Decimal:
    """Spread in percent needed just to cover the given fees."""
    total = sum(_require_amount("fee_bps", f) for f in fee_bps)
    return Decimal(total) / Decimal(100)


# =============================================================================
# UNIT CONVERSIONS
# =============================================================================

def raw_to_human(raw: int, decimals: int) -> Decimal:
    """
    Convert base units to a human-readable amount.

    Example: raw_to_human(1_000_000_000, 9) -> Decimal('1')
    """
    if decimals < 0 or decimals > 18:
        raise ValidationError(f"Invalid decimals: {decimals}")
    return Decimal(raw) / Decimal(10**decimals)


def human_to_raw(amount: Decimal | str | int, decimals: int) -> int:
    """
    Convert a human-readable amount to base units, truncating dust.

    Example: human_to_raw('1000', 9) -> 1_000_000_000_000
    """
    if decimals < 0 or decimals > 18:
        raise ValidationError(f"Invalid decimals: {decimals}")
    return safe_int(safe_decimal(amount) * Decimal(10**decimals))
