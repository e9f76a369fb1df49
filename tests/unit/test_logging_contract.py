# PATH: tests/unit/test_logging_contract.py
"""
Tests for logging contract enforcement.

No free-form kwargs to logger calls; context travels only in
extra={"context": {...}}.
"""

import ast
import json
import logging
import unittest
from pathlib import Path
from typing import Any, Dict, List

from core.logging import JSONFormatter, clear_global_context, get_logger, log_trade, set_global_context

PROJECT_ROOT = Path(__file__).parent.parent.parent
PACKAGES = ("core", "chains", "dex", "lending", "execution", "strategy", "notify", "config")


class TestLoggingContractEnforcement(unittest.TestCase):
    """AST-based tests for logging contract."""

    ALLOWED_KWARGS = {"exc_info", "extra", "stack_info", "stacklevel"}

    def _find_logger_violations(self, source_code: str) -> List[Dict[str, Any]]:
        """Find logger calls with invalid kwargs using AST."""
        violations = []
        tree = ast.parse(source_code)

        for node in ast.walk(tree):
            if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
                continue

            method_name = node.func.attr
            if method_name not in ("debug", "info", "warning", "error", "critical", "exception"):
                continue

            obj = node.func.value
            if isinstance(obj, ast.Name):
                is_logger = "log" in obj.id.lower()
            elif isinstance(obj, ast.Attribute):
                is_logger = "log" in obj.attr.lower()
            else:
                is_logger = False
            if not is_logger:
                continue

            for kw in node.keywords:
                if kw.arg and kw.arg not in self.ALLOWED_KWARGS:
                    violations.append({
                        "line": node.lineno,
                        "method": method_name,
                        "invalid_kwarg": kw.arg,
                    })

        return violations

    def test_detector_catches_violation(self):
        violations = self._find_logger_violations('logger.info("x", pool_id="0x1")\n')
        self.assertEqual(violations[0]["invalid_kwarg"], "pool_id")

    def test_packages_have_no_invalid_kwargs(self):
        files = [p for pkg in PACKAGES for p in sorted((PROJECT_ROOT / pkg).rglob("*.py"))]
        self.assertTrue(files)

        msg = ""
        for filepath in files:
            source = filepath.read_text(encoding="utf-8")
            for v in self._find_logger_violations(source):
                msg += f"  {filepath.relative_to(PROJECT_ROOT)}:{v['line']}: logger.{v['method']}(..., {v['invalid_kwarg']}=...)\n"
        if msg:
            self.fail(f"Logging violations:\n{msg}")


class TestLoggingContextCapture(unittest.TestCase):
    """Context flows from the adapter into records and the JSON output."""

    def setUp(self):
        self.captured_records = []

        class CapturingHandler(logging.Handler):
            def __init__(self, records_list):
                super().__init__()
                self.records = records_list

            def emit(self, record):
                self.records.append(record)

        self.name = f"tierarb.test_capture_{id(self)}"
        base = logging.getLogger(self.name)
        base.setLevel(logging.DEBUG)
        base.handlers = []
        base.propagate = False
        base.addHandler(CapturingHandler(self.captured_records))

    def tearDown(self):
        clear_global_context()

    def test_adapter_merges_default_context(self):
        logger = get_logger(self.name, pool_id="0x51e8")
        logger.info("Quote computed", extra={"context": {"amount_out": 365}})

        record = self.captured_records[0]
        self.assertEqual(record.context, {"pool_id": "0x51e8", "amount_out": 365})

    def test_call_context_wins(self):
        logger = get_logger(self.name, direction="LOW_TO_HIGH")
        logger.info("Flip", extra={"context": {"direction": "HIGH_TO_LOW"}})
        self.assertEqual(self.captured_records[0].context["direction"], "HIGH_TO_LOW")

    def test_log_trade_fields(self):
        log_trade(get_logger(self.name), "arb_1234abcd", "CONFIRMED", digest="9xYz", profit=10)
        record = self.captured_records[0]
        self.assertEqual(record.getMessage(), "Trade: arb_1234 | CONFIRMED")
        self.assertEqual(record.context["profit"], 10)

    def test_json_output(self):
        set_global_context(mode="dry_run")
        get_logger(self.name).warning("Price read failed", extra={"context": {"pool_id": "0x51e8"}})

        entry = json.loads(JSONFormatter().format(self.captured_records[0]))
        self.assertEqual(entry["level"], "WARNING")
        self.assertEqual(entry["message"], "Price read failed")
        self.assertEqual(entry["context"], {"mode": "dry_run", "pool_id": "0x51e8"})

    def test_exc_info_with_context(self):
        logger = get_logger(self.name)
        try:
            raise ValueError("Test error")
        except ValueError:
            logger.error("Caught error", exc_info=True, extra={"context": {"operation": "test"}})

        entry = json.loads(JSONFormatter().format(self.captured_records[0]))
        self.assertIn("ValueError", entry["context"]["exception"])
        self.assertEqual(entry["context"]["operation"], "test")


if __name__ == "__main__":
    unittest.main()
