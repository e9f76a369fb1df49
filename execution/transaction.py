"""
execution/transaction.py - Programmable transaction bundle builder.

A bundle is an ordered list of commands that execute atomically:
either every command succeeds or the whole transaction aborts. Later
commands refer to earlier outputs through Result / NestedResult
arguments, which is how a flash-loan coin flows through the swaps and
back into repayment.

The builder only describes the transaction. Serialization to BCS and
signing happen outside this process (see execution/submitter.py).
"""

from dataclasses import dataclass, field
from typing import Any, Union

from core.exceptions import ExecutionError


# =============================================================================
# ARGUMENTS
# =============================================================================

@dataclass(frozen=True)
class ObjectArg:
    """Reference to an on-chain object by id."""
    object_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "Object", "object_id": self.object_id}


@dataclass(frozen=True)
class PureArg:
    """BCS-encodable pure value with its Move type."""
    type: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        value = str(self.value) if isinstance(self.value, int) and not isinstance(self.value, bool) else self.value
        return {"kind": "Pure", "type": self.type, "value": value}


@dataclass(frozen=True)
class GasCoin:
    """The transaction's gas coin."""

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "GasCoin"}


@dataclass(frozen=True)
class Result:
    """Single output of an earlier command."""
    index: int

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "Result", "index": self.index}


@dataclass(frozen=True)
class NestedResult:
    """One element of a multi-value output of an earlier command."""
    index: int
    result_index: int

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "NestedResult", "index": self.index, "result_index": self.result_index}


Argument = Union[ObjectArg, PureArg, GasCoin, Result, NestedResult]


# =============================================================================
# COMMANDS
# =============================================================================

@dataclass(frozen=True)
class MoveCall:
    target: str
    type_arguments: tuple[str, ...]
    arguments: tuple[Argument, ...]
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": "MoveCall",
            "target": self.target,
            "type_arguments": list(self.type_arguments),
            "arguments": [a.to_dict() for a in self.arguments],
            "label": self.label,
        }


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...]
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": "SplitCoins",
            "coin": self.coin.to_dict(),
            "amounts": [a.to_dict() for a in self.amounts],
            "label": self.label,
        }


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    address: Argument
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": "TransferObjects",
            "objects": [o.to_dict() for o in self.objects],
            "address": self.address.to_dict(),
            "label": self.label,
        }


Command = Union[MoveCall, SplitCoins, TransferObjects]


@dataclass(frozen=True)
class TransactionBundle:
    """Immutable, fully assembled transaction description."""
    commands: tuple[Command, ...]
    sender: str
    gas_budget: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "gas_budget": str(self.gas_budget),
            "commands": [c.to_dict() for c in self.commands],
        }

    @property
    def labels(self) -> list[str]:
        return [c.label for c in self.commands]


@dataclass
class TransactionBuilder:
    """
    Accumulates commands, then freezes them into a TransactionBundle.

    Every add_* method returns the argument(s) that reference the new
    command's outputs.
    """
    sender: str
    gas_budget: int
    commands: list[Command] = field(default_factory=list)
    _built: bool = False

    def _append(self, command: Command) -> int:
        if self._built:
            raise ExecutionError("Transaction already built; builders are single-use")
        self.commands.append(command)
        return len(self.commands) - 1

    def _check_ref(self, arg: Argument) -> None:
        if isinstance(arg, (Result, NestedResult)) and arg.index >= len(self.commands):
            raise ExecutionError(
                f"Argument refers to command {arg.index} which does not exist yet",
                details={"index": arg.index, "commands": len(self.commands)},
            )

    def move_call(
        self,
        target: str,
        type_arguments: list[str] | None = None,
        arguments: list[Argument] | None = None,
        label: str = "",
    ) -> Result:
        args = tuple(arguments or ())
        for arg in args:
            self._check_ref(arg)
        index = self._append(
            MoveCall(
                target=target,
                type_arguments=tuple(type_arguments or ()),
                arguments=args,
                label=label or target.rsplit("::", 1)[-1],
            )
        )
        return Result(index)

    def split_coins(self, coin: Argument, amounts: list[int | Argument], label: str = "split") -> list[NestedResult]:
        self._check_ref(coin)
        amount_args = tuple(PureArg("u64", a) if isinstance(a, int) else a for a in amounts)
        index = self._append(SplitCoins(coin=coin, amounts=amount_args, label=label))
        return [NestedResult(index, i) for i in range(len(amount_args))]

    def transfer_objects(self, objects: list[Argument], address: str, label: str = "transfer") -> None:
        for obj in objects:
            self._check_ref(obj)
        self._append(
            TransferObjects(
                objects=tuple(objects),
                address=PureArg("address", address),
                label=label,
            )
        )

    def build(self) -> TransactionBundle:
        if not self.commands:
            raise ExecutionError("Cannot build an empty transaction")
        self._built = True
        return TransactionBundle(
            commands=tuple(self.commands),
            sender=self.sender,
            gas_budget=self.gas_budget,
        )
