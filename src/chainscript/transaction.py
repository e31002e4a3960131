"""Transaction inputs, programmable commands, the builder, and transaction envelopes."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from chainscript.errors import ScriptError
from chainscript.types import Address, Digest, ObjectID, ObjectRef

# ---------------------------------------------------------------------------
# Inputs


@dataclass(frozen=True, slots=True)
class ImmOrOwnedObject:
    object_ref: ObjectRef

    @property
    def object_id(self) -> ObjectID:
        return self.object_ref.object_id

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "imm_or_owned", "object_ref": self.object_ref.to_dict()}


@dataclass(frozen=True, slots=True)
class SharedObject:
    object_id: ObjectID
    initial_shared_version: int
    mutable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "shared",
            "object_id": str(self.object_id),
            "initial_shared_version": self.initial_shared_version,
            "mutable": self.mutable,
        }


@dataclass(frozen=True, slots=True)
class Receiving:
    object_ref: ObjectRef

    @property
    def object_id(self) -> ObjectID:
        return self.object_ref.object_id

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "receiving", "object_ref": self.object_ref.to_dict()}


ObjectArg = ImmOrOwnedObject | SharedObject | Receiving


@dataclass(frozen=True, slots=True)
class Pure:
    data: bytes

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "pure", "data": self.data.hex()}


@dataclass(frozen=True, slots=True)
class ObjectInput:
    arg: ObjectArg

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "object", "arg": self.arg.to_dict()}


CallArg = Pure | ObjectInput

# ---------------------------------------------------------------------------
# Arguments


@dataclass(frozen=True, slots=True)
class GasCoin:
    def __str__(self) -> str:
        return "Gas"


@dataclass(frozen=True, slots=True)
class Input:
    index: int

    def __str__(self) -> str:
        return f"Input({self.index})"


@dataclass(frozen=True, slots=True)
class Result:
    index: int

    def __str__(self) -> str:
        return f"Result({self.index})"


@dataclass(frozen=True, slots=True)
class NestedResult:
    index: int
    result_index: int

    def __str__(self) -> str:
        return f"NestedResult({self.index}, {self.result_index})"


Argument = GasCoin | Input | Result | NestedResult

# ---------------------------------------------------------------------------
# Commands


@dataclass(frozen=True, slots=True)
class MoveCall:
    package: ObjectID
    module: str
    function: str
    arguments: tuple[Argument, ...] = ()
    type_arguments: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "move_call",
            "target": f"{self.package}::{self.module}::{self.function}",
            "type_arguments": list(self.type_arguments),
            "arguments": [str(arg) for arg in self.arguments],
        }


@dataclass(frozen=True, slots=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    address: Argument

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "transfer_objects",
            "objects": [str(arg) for arg in self.objects],
            "address": str(self.address),
        }


@dataclass(frozen=True, slots=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "split_coins", "coin": str(self.coin), "amounts": [str(arg) for arg in self.amounts]}


@dataclass(frozen=True, slots=True)
class MergeCoins:
    destination: Argument
    sources: tuple[Argument, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "merge_coins",
            "destination": str(self.destination),
            "sources": [str(arg) for arg in self.sources],
        }


@dataclass(frozen=True, slots=True)
class MakeMoveVec:
    type_tag: str | None
    elements: tuple[Argument, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "make_move_vec", "type": self.type_tag, "elements": [str(arg) for arg in self.elements]}


@dataclass(frozen=True, slots=True)
class Publish:
    modules: tuple[tuple[str, str], ...]
    dependencies: tuple[ObjectID, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "publish",
            "modules": {name: source for name, source in self.modules},
            "dependencies": [str(dep) for dep in self.dependencies],
        }


def package_digest(modules: Iterable[tuple[str, str]], dependencies: Iterable[ObjectID]) -> Digest:
    """Digest an upgrade ticket commits to: module sources plus dependency ids."""
    return Digest.of_data(
        {
            "modules": {name: source for name, source in sorted(modules)},
            "dependencies": sorted(str(dep) for dep in dependencies),
        },
        domain="MovePackage",
    )


@dataclass(frozen=True, slots=True)
class Upgrade:
    modules: tuple[tuple[str, str], ...]
    dependencies: tuple[ObjectID, ...]
    package: ObjectID
    ticket: Argument

    def digest(self) -> Digest:
        return package_digest(self.modules, self.dependencies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "upgrade",
            "modules": {name: source for name, source in self.modules},
            "dependencies": [str(dep) for dep in self.dependencies],
            "package": str(self.package),
            "ticket": str(self.ticket),
        }


Command = MoveCall | TransferObjects | SplitCoins | MergeCoins | MakeMoveVec | Publish | Upgrade


@dataclass(slots=True)
class ProgrammableTransaction:
    inputs: list[CallArg] = field(default_factory=list)
    commands: list[Command] = field(default_factory=list)

    def input_objects(self) -> list[ObjectArg]:
        return [item.arg for item in self.inputs if isinstance(item, ObjectInput)]

    def shared_input_objects(self) -> list[SharedObject]:
        return [arg for arg in self.input_objects() if isinstance(arg, SharedObject)]

    def contains_shared_object(self) -> bool:
        return bool(self.shared_input_objects())

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "programmable",
            "inputs": [item.to_dict() for item in self.inputs],
            "commands": [command.to_dict() for command in self.commands],
        }


def _merge_object_args(existing: ObjectArg, arg: ObjectArg) -> ObjectArg:
    """Combine two uses of one object into a single input, or reject the pair."""
    if existing == arg:
        return existing
    if isinstance(existing, SharedObject) and isinstance(arg, SharedObject):
        if existing.initial_shared_version == arg.initial_shared_version:
            return SharedObject(arg.object_id, arg.initial_shared_version, existing.mutable or arg.mutable)
    raise ScriptError(
        f"Mismatched object argument kind for object {arg.object_id}",
        text=str(arg),
        expected="one input kind per object",
    )


class ProgrammableTransactionBuilder:
    """Accumulates inputs and commands; identical inputs share one slot."""

    def __init__(self) -> None:
        self._inputs: list[CallArg] = []
        self._pure_slots: dict[bytes, int] = {}
        self._object_slots: dict[ObjectID, int] = {}
        self._commands: list[Command] = []

    @property
    def input_count(self) -> int:
        return len(self._inputs)

    @property
    def command_count(self) -> int:
        return len(self._commands)

    def pure(self, data: bytes) -> Argument:
        slot = self._pure_slots.get(data)
        if slot is None:
            slot = len(self._inputs)
            self._inputs.append(Pure(data))
            self._pure_slots[data] = slot
        return Input(slot)

    def obj(self, arg: ObjectArg) -> Argument:
        slot = self._object_slots.get(arg.object_id)
        if slot is None:
            slot = len(self._inputs)
            self._inputs.append(ObjectInput(arg))
            self._object_slots[arg.object_id] = slot
            return Input(slot)

        existing = self._inputs[slot]
        assert isinstance(existing, ObjectInput)
        self._inputs[slot] = ObjectInput(_merge_object_args(existing.arg, arg))
        return Input(slot)

    def input(self, call_arg: CallArg) -> Argument:
        if isinstance(call_arg, Pure):
            return self.pure(call_arg.data)
        return self.obj(call_arg.arg)

    def command(self, command: Command) -> Argument:
        self._commands.append(command)
        return Result(len(self._commands) - 1)

    def make_obj_vec(self, args: Iterable[ObjectArg]) -> Argument:
        items = list(args)
        # Nothing is registered unless every element fits the existing slots.
        pending: dict[ObjectID, ObjectArg] = {}
        for arg in items:
            current = pending.get(arg.object_id)
            if current is None:
                slot = self._object_slots.get(arg.object_id)
                if slot is not None:
                    existing = self._inputs[slot]
                    assert isinstance(existing, ObjectInput)
                    current = existing.arg
            pending[arg.object_id] = arg if current is None else _merge_object_args(current, arg)
        elements = tuple(self.obj(arg) for arg in items)
        return self.command(MakeMoveVec(None, elements))

    def finish(self) -> ProgrammableTransaction:
        return ProgrammableTransaction(inputs=list(self._inputs), commands=list(self._commands))


# ---------------------------------------------------------------------------
# System transaction kinds


@dataclass(frozen=True, slots=True)
class ConsensusCommitPrologue:
    epoch: int
    round: int
    commit_timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "consensus_commit_prologue",
            "epoch": self.epoch,
            "round": self.round,
            "commit_timestamp_ms": self.commit_timestamp_ms,
        }


@dataclass(frozen=True, slots=True)
class ChangeEpoch:
    epoch: int
    epoch_start_timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "change_epoch",
            "epoch": self.epoch,
            "epoch_start_timestamp_ms": self.epoch_start_timestamp_ms,
        }


TransactionKind = ProgrammableTransaction | ConsensusCommitPrologue | ChangeEpoch


@dataclass(slots=True)
class TransactionData:
    kind: TransactionKind
    sender: Address
    gas_payment: list[ObjectRef] = field(default_factory=list)
    gas_budget: int = 0
    gas_price: int = 0

    def is_system(self) -> bool:
        return not isinstance(self.kind, ProgrammableTransaction)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.to_dict(),
            "sender": str(self.sender),
            "gas_payment": [ref.to_dict() for ref in self.gas_payment],
            "gas_budget": self.gas_budget,
            "gas_price": self.gas_price,
        }


@dataclass(slots=True)
class Transaction:
    data: TransactionData

    @property
    def digest(self) -> Digest:
        return Digest.of_data(self.data.to_dict(), domain="TransactionData")

    def contains_shared_object(self) -> bool:
        kind = self.data.kind
        if isinstance(kind, ProgrammableTransaction):
            return kind.contains_shared_object()
        # System transactions always write the shared clock or system state.
        return True


__all__ = [
    "Argument",
    "CallArg",
    "ChangeEpoch",
    "Command",
    "ConsensusCommitPrologue",
    "GasCoin",
    "ImmOrOwnedObject",
    "Input",
    "MakeMoveVec",
    "MergeCoins",
    "MoveCall",
    "NestedResult",
    "ObjectArg",
    "ObjectInput",
    "ProgrammableTransaction",
    "ProgrammableTransactionBuilder",
    "Publish",
    "Pure",
    "Receiving",
    "Result",
    "SharedObject",
    "SplitCoins",
    "Transaction",
    "TransactionData",
    "TransactionKind",
    "TransferObjects",
    "Upgrade",
    "package_digest",
]
