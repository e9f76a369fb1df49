"""
tests/unit/test_transaction.py - Tests for execution/transaction.py
"""

import pytest

from core.exceptions import ExecutionError
from execution.transaction import GasCoin, NestedResult, ObjectArg, PureArg, Result, TransactionBuilder
from tests.factories import WALLET


class TestTransactionBuilder:
    def test_references_flow_between_commands(self):
        builder = TransactionBuilder(sender=WALLET, gas_budget=50_000_000)
        coin = builder.move_call("0x2::coin::zero", type_arguments=["0x2::sui::SUI"])
        parts = builder.split_coins(coin, [10, 20])
        builder.transfer_objects([parts[1]], WALLET)
        bundle = builder.build()

        assert coin == Result(0)
        assert parts == [NestedResult(1, 0), NestedResult(1, 1)]
        assert bundle.labels == ["zero", "split", "transfer"]
        assert bundle.commands[1].amounts == (PureArg("u64", 10), PureArg("u64", 20))

    def test_forward_reference_rejected(self):
        builder = TransactionBuilder(sender=WALLET, gas_budget=1)
        with pytest.raises(ExecutionError):
            builder.move_call("0x1::m::f", arguments=[Result(0)])

    def test_single_use(self):
        builder = TransactionBuilder(sender=WALLET, gas_budget=1)
        builder.move_call("0x1::m::f")
        builder.build()
        with pytest.raises(ExecutionError):
            builder.move_call("0x1::m::g")

    def test_empty_build(self):
        with pytest.raises(ExecutionError):
            TransactionBuilder(sender=WALLET, gas_budget=1).build()

    def test_serialization(self):
        builder = TransactionBuilder(sender=WALLET, gas_budget=50_000_000)
        builder.move_call(
            "0x1::m::f",
            arguments=[ObjectArg("0x6"), PureArg("u128", 2**100), PureArg("bool", True), GasCoin()],
            label="call",
        )
        data = builder.build().to_dict()

        assert data["sender"] == WALLET
        assert data["gas_budget"] == "50000000"
        args = data["commands"][0]["arguments"]
        # u128 values survive JSON as strings
        assert args[1] == {"kind": "Pure", "type": "u128", "value": str(2**100)}
        assert args[2]["value"] is True
        assert args[3] == {"kind": "GasCoin"}
        assert data["commands"][0]["label"] == "call"
