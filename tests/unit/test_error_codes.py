# PATH: tests/unit/test_error_codes.py
"""
Unit tests for the ErrorCode contract.

Every ErrorCode.X referenced in the codebase must exist in the enum, and
every exception class carries a sensible default code.
"""

import re
import unittest
from pathlib import Path
from typing import Set

from core.exceptions import (
    CapacityError,
    DataIntegrityError,
    ErrorCode,
    InfraError,
    InvalidPoolStateError,
    KillSwitchTriggered,
    OrientationAmbiguousError,
    PoolError,
    PriceSanityError,
    QuoteError,
    ReserveNotFoundError,
    SignerError,
    TierArbError,
)

PROJECT_ROOT = Path(__file__).parent.parent.parent


class TestErrorCodeContract(unittest.TestCase):
    """All ErrorCode usages in the codebase are valid."""

    SCAN_PATTERNS = [
        "core/**/*.py",
        "chains/**/*.py",
        "dex/**/*.py",
        "lending/**/*.py",
        "execution/**/*.py",
        "strategy/**/*.py",
        "notify/**/*.py",
    ]

    def get_all_error_codes(self) -> Set[str]:
        return {code.name for code in ErrorCode}

    def find_errorcode_usages(self, filepath: Path) -> Set[str]:
        content = filepath.read_text(encoding="utf-8")
        return set(re.findall(r"ErrorCode\.([A-Z_]+)", content))

    def test_all_usages_exist(self):
        valid = self.get_all_error_codes()
        missing = {}
        for pattern in self.SCAN_PATTERNS:
            for filepath in PROJECT_ROOT.glob(pattern):
                unknown = self.find_errorcode_usages(filepath) - valid
                if unknown:
                    missing[str(filepath.relative_to(PROJECT_ROOT))] = sorted(unknown)
        self.assertEqual(missing, {}, f"Unknown ErrorCode members: {missing}")

    def test_values_match_names(self):
        for code in ErrorCode:
            self.assertEqual(code.value, code.name)

    def test_str_enum(self):
        self.assertEqual(ErrorCode("INSUFFICIENT_PROFIT"), ErrorCode.INSUFFICIENT_PROFIT)
        self.assertEqual(ErrorCode.QUOTE_STALE, "QUOTE_STALE")


class TestExceptionContract(unittest.TestCase):
    """Exception defaults, hierarchy and serialization."""

    def test_default_codes(self):
        cases = {
            InfraError: ErrorCode.INFRA_RPC_ERROR,
            SignerError: ErrorCode.INFRA_SIGNER_ERROR,
            PoolError: ErrorCode.POOL_NOT_FOUND,
            InvalidPoolStateError: ErrorCode.POOL_INVALID_STATE,
            PriceSanityError: ErrorCode.PRICE_SANITY_FAILED,
            OrientationAmbiguousError: ErrorCode.PRICE_ORIENTATION_AMBIGUOUS,
            ReserveNotFoundError: ErrorCode.RESERVE_NOT_FOUND,
            CapacityError: ErrorCode.CAPACITY_EXCEEDED,
            QuoteError: ErrorCode.QUOTE_FAILED,
            KillSwitchTriggered: ErrorCode.KILL_SWITCH_TRIGGERED,
        }
        for cls, code in cases.items():
            self.assertEqual(cls("x").code, code, cls.__name__)

    def test_explicit_code_wins(self):
        err = PoolError("wrong assets", code=ErrorCode.POOL_ASSET_MISMATCH)
        self.assertEqual(err.code, ErrorCode.POOL_ASSET_MISMATCH)

    def test_data_integrity_family(self):
        for cls in (PoolError, InvalidPoolStateError, PriceSanityError, OrientationAmbiguousError,
                    ReserveNotFoundError, CapacityError):
            self.assertTrue(issubclass(cls, DataIntegrityError), cls.__name__)
        self.assertFalse(issubclass(InfraError, DataIntegrityError))
        self.assertTrue(issubclass(SignerError, InfraError))
        self.assertTrue(issubclass(InvalidPoolStateError, PoolError))

    def test_str_and_to_dict(self):
        err = CapacityError("principal too large", details={"available": 10})
        self.assertEqual(str(err), "[CAPACITY_EXCEEDED] principal too large")
        self.assertEqual(
            err.to_dict(),
            {"error_code": "CAPACITY_EXCEEDED", "message": "principal too large", "details": {"available": 10}},
        )

    def test_base_is_exception(self):
        with self.assertRaises(TierArbError):
            raise QuoteError("no liquidity")


if __name__ == "__main__":
    unittest.main()
