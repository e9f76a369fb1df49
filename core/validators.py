# PATH: core/validators.py
"""
Coin-type and price-band validators for TIERARB.

CONTRACTS:
- normalize_coin_type(): canonical form used for ALL type comparisons.
  Strips the 0x prefix, strips leading zeros from addresses, lowercases.
  "0x2::sui::SUI" and "0x000...0002::sui::SUI" normalize identically.
- coin_types_equal(): exact equality after normalization, never substring
- parse_type_args(): generic arguments of a Move struct type string
- check_price_band(): (passed, details) against a [min, max] band
"""

import re
from decimal import Decimal
from typing import Any

from core.exceptions import ValidationError

# An address token is a hex run at the start of the string or after a
# generic delimiter, immediately followed by "::"
_ADDRESS_RE = re.compile(r"(^|[<,\s])(?:0[xX])?([0-9a-fA-F]+)(?=::)")

_OBJECT_ID_RE = re.compile(r"^0[xX][0-9a-fA-F]{1,64}$")


def _strip_address(match: re.Match) -> str:
    prefix, address = match.group(1), match.group(2)
    return prefix + (address.lstrip("0") or "0")


def normalize_coin_type(coin_type: str) -> str:
    """
    Canonical coin-type string for comparison.

    Example:
        normalize_coin_type("0x0000000000000000000000000000000000000000000000000000000000000002::sui::SUI")
        -> "2::sui::sui"
    """
    if not isinstance(coin_type, str) or "::" not in coin_type:
        raise ValidationError(
            f"Not a Move coin type: {coin_type!r}",
            details={"coin_type": coin_type},
        )
    compact = re.sub(r"\s+", "", coin_type.strip())
    compact = compact.replace(",", ", ")
    return _ADDRESS_RE.sub(_strip_address, compact).replace(" ", "").lower()


def coin_types_equal(left: str, right: str) -> bool:
    """Exact coin-type equality after normalization."""
    return normalize_coin_type(left) == normalize_coin_type(right)


def parse_type_args(struct_type: str) -> list[str]:
    """
    Split the outermost generic arguments of a Move struct type.

    Example:
        parse_type_args("0x1eab::pool::Pool<0x2::sui::SUI, 0xdba3::usdc::USDC>")
        -> ["0x2::sui::SUI", "0xdba3::usdc::USDC"]
    """
    start = struct_type.find("<")
    if start == -1 or not struct_type.endswith(">"):
        return []

    inner = struct_type[start + 1:-1]
    args: list[str] = []
    depth = 0
    current = []
    for ch in inner:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    if current:
        args.append("".join(current).strip())
    return [a for a in args if a]


def is_valid_object_id(object_id: str) -> bool:
    """Check a Sui object id / address (0x + up to 64 hex chars)."""
    return isinstance(object_id, str) and bool(_OBJECT_ID_RE.match(object_id))


def check_price_band(
    price: Decimal,
    min_price: Decimal,
    max_price: Decimal,
) -> tuple[bool, dict[str, Any]]:
    """
    Check a price against the sanity band (inclusive).

    Returns:
        (passed, details)
    """
    passed = min_price <= price <= max_price
    details = {
        "price": str(price),
        "min_price": str(min_price),
        "max_price": str(max_price),
    }
    if not passed:
        details["side"] = "below" if price < min_price else "above"
    return passed, details
