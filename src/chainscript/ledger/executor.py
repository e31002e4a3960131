"""Deterministic execution of transactions against an object reader.

Execution never writes to storage. It returns a ``WriteSet`` the caller
commits (or drops, for dev-inspect). Validation failures raise
``TransactionRejected`` before anything runs; failures during execution come
back as an ``ExecutionFailure`` next to effects that still charge gas and bump
the versions of every mutable input.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from chainscript.bcs import decode_bool, decode_bytes, decode_uint
from chainscript.canonical import blake2b_256
from chainscript.constants import BASE_COMPUTATION_UNITS, COMMAND_COMPUTATION_UNITS, DEV_INSPECT_GAS_BUDGET
from chainscript.effects import Event, TransactionEffects
from chainscript.errors import ExecutionFailure, InvariantViolation, TransactionRejected
from chainscript.ledger.framework import UPGRADE_POLICIES
from chainscript.ledger.genesis import CLOCK_OBJECT_ID, COIN_TYPE, SYSTEM_STATE_OBJECT_ID, UPGRADE_CAP_TYPE
from chainscript.ledger.natives import (
    CommandError,
    NativeRegistry,
    ParameterKind,
    ReceivingTicket,
    RuntimeObject,
    UpgradeReceipt,
    UpgradeTicket,
)
from chainscript.ledger.store import WriteSet
from chainscript.transaction import (
    Argument,
    ChangeEpoch,
    Command,
    ConsensusCommitPrologue,
    GasCoin,
    ImmOrOwnedObject,
    Input,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NestedResult,
    ObjectInput,
    ProgrammableTransaction,
    Publish,
    Pure,
    Receiving,
    Result,
    SharedObject,
    SplitCoins,
    Transaction,
    TransactionData,
    TransferObjects,
    Upgrade,
)
from chainscript.types import (
    ADDRESS_LENGTH,
    PACKAGE_TYPE,
    Address,
    AddressOwner,
    Digest,
    Immutable,
    Object,
    ObjectID,
    ObjectOwner,
    ObjectRef,
    Shared,
)

_log = logging.getLogger(__name__)

DELETED_DIGEST = Digest(bytes([0x63]) * 32)


class ObjectReader(Protocol):
    def get_object(self, object_id: ObjectID) -> Object | None: ...

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None: ...


@dataclass(slots=True)
class ExecutionEnvironment:
    epoch: int
    timestamp_ms: int
    natives: NativeRegistry
    max_gas: int


@dataclass(slots=True)
class ExecutionOutcome:
    write_set: WriteSet
    failure: ExecutionFailure | None = None
    results: list[list[Any]] = field(default_factory=list)

    @property
    def effects(self) -> TransactionEffects:
        return self.write_set.effects


# Access modes of objects in a session's working set.
_OWNED = "owned"
_IMMUTABLE = "immutable"
_SHARED_MUT = "shared_mut"
_SHARED_READ = "shared_read"
_GAS = "gas"
_NEW = "new"
_RECEIVED = "received"
_MUTABLE_ACCESS = {_OWNED, _SHARED_MUT, _GAS, _NEW, _RECEIVED}


@dataclass(slots=True)
class _CheckedInputs:
    objects: list[Object | None]
    receivable: dict[ObjectID, Object]
    gas: list[Object]


def _reject(reason: str, message: str) -> TransactionRejected:
    return TransactionRejected(reason, message)


def _load_owned(reader: ObjectReader, arg: ImmOrOwnedObject, sender: Address, dev_inspect: bool) -> Object:
    ref = arg.object_ref
    obj = reader.get_object(ref.object_id)
    if obj is None:
        raise _reject("ObjectNotFound", f"object {ref.object_id} does not exist")
    if obj.version != ref.version or obj.digest() != ref.digest:
        raise _reject(
            "ObjectVersionUnavailableForConsumption",
            f"object {ref.object_id} is at version {obj.version}, transaction expects {ref.version}",
        )
    owner = obj.owner
    if isinstance(owner, Shared):
        raise _reject("NotOwnedObject", f"shared object {ref.object_id} passed as owned")
    if isinstance(owner, ObjectOwner):
        raise _reject("InvalidChildObjectArgument", f"object {ref.object_id} is owned by object {owner.address}")
    if isinstance(owner, AddressOwner) and owner.address != sender and not dev_inspect:
        raise _reject("IncorrectUserSignature", f"object {ref.object_id} is not owned by {sender}")
    return obj


def _load_shared(reader: ObjectReader, arg: SharedObject, shared_versions: Mapping[ObjectID, int]) -> Object:
    assigned = shared_versions.get(arg.object_id)
    if assigned is None:
        obj = reader.get_object(arg.object_id)
    else:
        obj = reader.get_object_by_key(arg.object_id, assigned)
    if obj is None:
        raise _reject("ObjectNotFound", f"shared object {arg.object_id} does not exist")
    if not isinstance(obj.owner, Shared):
        raise _reject("NotSharedObject", f"object {arg.object_id} is not shared")
    if obj.owner.initial_shared_version != arg.initial_shared_version:
        raise _reject(
            "SharedObjectStartingVersionMismatch",
            f"object {arg.object_id} was shared at version {obj.owner.initial_shared_version}",
        )
    return obj


def _load_receiving(reader: ObjectReader, arg: Receiving) -> Object:
    ref = arg.object_ref
    obj = reader.get_object_by_key(ref.object_id, ref.version)
    latest = reader.get_object(ref.object_id)
    if obj is None or latest is None or latest.version != ref.version:
        raise _reject(
            "ObjectVersionUnavailableForConsumption",
            f"receiving object {ref.object_id} is not available at version {ref.version}",
        )
    if not isinstance(obj.owner, (AddressOwner, ObjectOwner)):
        raise _reject("InvalidReceivingObject", f"object {ref.object_id} cannot be received")
    return obj


def check_inputs(
    reader: ObjectReader,
    data: TransactionData,
    env: ExecutionEnvironment,
    *,
    shared_versions: Mapping[ObjectID, int] | None = None,
    dev_inspect: bool = False,
) -> _CheckedInputs:
    kind = data.kind
    if not isinstance(kind, ProgrammableTransaction):
        raise InvariantViolation("input checks only apply to programmable transactions")
    assigned = shared_versions or {}
    objects: list[Object | None] = []
    receivable: dict[ObjectID, Object] = {}
    seen: set[ObjectID] = set()

    for call_arg in kind.inputs:
        if isinstance(call_arg, Pure):
            objects.append(None)
            continue
        arg = call_arg.arg
        object_id = arg.object_id
        if object_id in seen:
            raise _reject("DuplicateObjectRef", f"object {object_id} appears twice in the inputs")
        seen.add(object_id)
        if isinstance(arg, ImmOrOwnedObject):
            objects.append(_load_owned(reader, arg, data.sender, dev_inspect).copy())
        elif isinstance(arg, SharedObject):
            objects.append(_load_shared(reader, arg, assigned).copy())
        else:
            obj = _load_receiving(reader, arg).copy()
            receivable[object_id] = obj
            objects.append(None)

    gas: list[Object] = []
    if dev_inspect:
        return _CheckedInputs(objects=objects, receivable=receivable, gas=gas)

    if data.gas_budget > env.max_gas:
        raise _reject("GasBudgetTooHigh", f"gas budget {data.gas_budget} exceeds maximum {env.max_gas}")
    if not data.gas_payment:
        raise _reject("MissingGasPayment", "transaction has no gas payment")
    for ref in data.gas_payment:
        if ref.object_id in seen:
            raise _reject("GasObjectAsInput", f"gas object {ref.object_id} is also a transaction input")
        coin = reader.get_object(ref.object_id)
        if coin is None or coin.version != ref.version:
            raise _reject("ObjectVersionUnavailableForConsumption", f"gas object {ref.object_id} is stale")
        if coin.type_tag != COIN_TYPE or coin.owner != AddressOwner(data.sender):
            raise _reject("InvalidGasObject", f"gas object {ref.object_id} is not a coin owned by {data.sender}")
        gas.append(coin.copy())
    balance = sum(int(coin.fields["balance"]) for coin in gas)
    if balance < data.gas_budget:
        raise _reject("GasBalanceTooLow", f"gas balance {balance} is below the budget {data.gas_budget}")
    return _CheckedInputs(objects=objects, receivable=receivable, gas=gas)


def _lamport_version(checked: _CheckedInputs) -> int:
    versions = [obj.version for obj in checked.objects if obj is not None]
    versions.extend(obj.version for obj in checked.receivable.values())
    versions.extend(obj.version for obj in checked.gas)
    return max(versions, default=0) + 1


class _Session:
    """Working set for one programmable transaction."""

    def __init__(
        self,
        *,
        reader: ObjectReader,
        digest: Digest,
        sender: Address,
        lamport: int,
        env: ExecutionEnvironment,
        transaction: ProgrammableTransaction,
        checked: _CheckedInputs,
        gas_coin: Object | None,
    ) -> None:
        self.sender = sender
        self._reader = reader
        self._digest = digest
        self._lamport = lamport
        self._env = env
        self._objects: dict[ObjectID, Object] = {}
        self._access: dict[ObjectID, str] = {}
        self._receivable = dict(checked.receivable)
        self._moved: set[ObjectID] = set()
        self._pending: set[ObjectID] = set()
        self._touched: set[ObjectID] = set()
        self._created: list[ObjectID] = []
        self._deleted: set[ObjectID] = set()
        self._received: set[ObjectID] = set()
        self._id_counter = 0
        self._current_package: ObjectID | None = None
        self.events: list[Event] = []
        self.results: list[list[Any]] = []
        self._gas_id: ObjectID | None = None
        self._input_values: list[Any] = []
        self._unspent: set[UpgradeTicket | UpgradeReceipt] = set()

        for call_arg, obj in zip(transaction.inputs, checked.objects):
            if isinstance(call_arg, Pure):
                self._input_values.append(call_arg.data)
                continue
            arg = call_arg.arg
            if isinstance(arg, Receiving):
                self._input_values.append(ReceivingTicket(arg.object_ref))
                continue
            assert obj is not None
            self._objects[obj.id] = obj.copy()
            if isinstance(arg, SharedObject):
                self._access[obj.id] = _SHARED_MUT if arg.mutable else _SHARED_READ
            elif isinstance(obj.owner, Immutable):
                self._access[obj.id] = _IMMUTABLE
            else:
                self._access[obj.id] = _OWNED
            self._input_values.append(RuntimeObject(obj.id))

        if gas_coin is not None:
            self._gas_id = gas_coin.id
            self._objects[gas_coin.id] = gas_coin
            self._access[gas_coin.id] = _GAS

    # -- native context -------------------------------------------------

    def new_object(self, type_tag: str, fields: dict[str, Any]) -> RuntimeObject:
        object_id = self._fresh_id()
        self._objects[object_id] = Object(
            id=object_id,
            version=self._lamport,
            owner=AddressOwner(self.sender),
            type_tag=type_tag,
            fields=dict(fields),
            previous_transaction=self._digest,
        )
        self._access[object_id] = _NEW
        self._created.append(object_id)
        self._pending.add(object_id)
        return RuntimeObject(object_id)

    def borrow(self, value: RuntimeObject) -> Object:
        return self._live(value)

    def borrow_mut(self, value: RuntimeObject) -> Object:
        obj = self._live(value)
        if self._access[obj.id] not in _MUTABLE_ACCESS:
            raise CommandError("InvalidObjectMutation", f"object {obj.id} is not mutable here")
        self._touched.add(obj.id)
        return obj

    def transfer(self, value: RuntimeObject, recipient: Address) -> None:
        self._check_not_shared_input(value)
        obj = self._place(value)
        obj.owner = AddressOwner(recipient)

    def share(self, value: RuntimeObject) -> None:
        if value.object_id not in self._created:
            raise CommandError("SharedObjectOperationNotAllowed", f"object {value.object_id} was not created here")
        obj = self._place(value)
        obj.owner = Shared(self._lamport)

    def freeze(self, value: RuntimeObject) -> None:
        self._check_not_shared_input(value)
        obj = self._place(value)
        obj.owner = Immutable()

    def delete(self, value: RuntimeObject) -> None:
        self._place(value)
        self._deleted.add(value.object_id)

    def receive(self, parent: RuntimeObject, ticket: ReceivingTicket) -> RuntimeObject:
        object_id = ticket.object_ref.object_id
        if object_id in self._received:
            raise CommandError("InvalidReceive", f"object {object_id} was already received")
        obj = self._receivable.get(object_id)
        if obj is None:
            raise CommandError("InvalidReceive", f"object {object_id} is not a receiving input")
        if obj.owner not in (AddressOwner(parent.object_id), ObjectOwner(parent.object_id)):
            raise CommandError("InvalidReceive", f"object {object_id} is not owned by {parent.object_id}")
        self._received.add(object_id)
        self._objects[object_id] = obj
        self._access[object_id] = _RECEIVED
        self._touched.add(object_id)
        self._pending.add(object_id)
        return RuntimeObject(object_id)

    def emit(self, module: str, type_name: str, fields: dict[str, Any]) -> None:
        package = self._current_package
        assert package is not None
        self.events.append(
            Event(
                package_id=package,
                module=module,
                sender=self.sender,
                type_tag=f"{package.short()}::{module}::{type_name}",
                fields=dict(fields),
                tx_digest=self._digest,
                event_seq=len(self.events),
            )
        )

    # -- helpers ----------------------------------------------------------

    def _fresh_id(self) -> ObjectID:
        counter = self._id_counter
        self._id_counter += 1
        return Address(blake2b_256(self._digest.value, counter.to_bytes(8, "little")))

    def _live(self, value: Any) -> Object:
        if not isinstance(value, RuntimeObject):
            raise CommandError("TypeMismatch", f"expected an object, found {value!r}")
        obj = self._objects.get(value.object_id)
        if obj is None or value.object_id in self._deleted:
            raise CommandError("ArgumentWithoutValue", f"object {value.object_id} is not available")
        if value.object_id in self._moved and value.object_id not in self._pending:
            raise CommandError("ArgumentWithoutValue", f"object {value.object_id} was moved")
        return obj

    def _take(self, value: Any, *, allow_gas: bool = False) -> RuntimeObject:
        obj = self._live(value)
        access = self._access[obj.id]
        if access in (_IMMUTABLE, _SHARED_READ):
            raise CommandError("InvalidValueUsage", f"object {obj.id} cannot be used by value")
        if access == _GAS and not allow_gas:
            raise CommandError("InvalidGasCoinUsage", "the gas coin can only be transferred by value")
        if obj.id in self._moved:
            raise CommandError("ArgumentWithoutValue", f"object {obj.id} was moved")
        self._moved.add(obj.id)
        self._pending.add(obj.id)
        return RuntimeObject(obj.id)

    def _place(self, value: RuntimeObject) -> Object:
        if value.object_id not in self._pending:
            raise CommandError("ArgumentWithoutValue", f"object {value.object_id} is not held by value")
        obj = self._objects[value.object_id]
        self._pending.discard(value.object_id)
        self._touched.add(value.object_id)
        return obj

    def _check_not_shared_input(self, value: RuntimeObject) -> None:
        # Shared objects may be mutated or deleted, never transferred or frozen.
        if self._access.get(value.object_id) == _SHARED_MUT:
            raise CommandError(
                "SharedObjectOperationNotAllowed", f"shared object {value.object_id} cannot change owner"
            )

    def _argument(self, arg: Argument) -> Any:
        if isinstance(arg, GasCoin):
            if self._gas_id is None:
                raise CommandError("InvalidGasCoinUsage", "transaction has no gas coin")
            return RuntimeObject(self._gas_id)
        if isinstance(arg, Input):
            if arg.index >= len(self._input_values):
                raise CommandError("IndexOutOfBounds", f"input {arg.index} does not exist")
            return self._input_values[arg.index]
        if isinstance(arg, Result):
            if arg.index >= len(self.results):
                raise CommandError("IndexOutOfBounds", f"result {arg.index} does not exist")
            values = self.results[arg.index]
            if len(values) != 1:
                raise CommandError("InvalidResultArity", f"result {arg.index} has {len(values)} values")
            return values[0]
        if isinstance(arg, NestedResult):
            if arg.index >= len(self.results) or arg.result_index >= len(self.results[arg.index]):
                raise CommandError("IndexOutOfBounds", f"nested result {arg} does not exist")
            return self.results[arg.index][arg.result_index]
        raise InvariantViolation(f"unhandled argument {arg!r}")

    def _decode(self, kind: ParameterKind, value: Any) -> Any:
        try:
            if kind == "u64":
                if isinstance(value, bytes):
                    return decode_uint(value, 64)
                if isinstance(value, int) and not isinstance(value, bool):
                    return value
            elif kind == "bool":
                if isinstance(value, bytes):
                    return decode_bool(value)
                if isinstance(value, bool):
                    return value
            elif kind == "address":
                if isinstance(value, bytes) and len(value) == ADDRESS_LENGTH:
                    return Address(value)
                if isinstance(value, Address):
                    return value
            elif kind == "vector<u8>":
                if isinstance(value, bytes):
                    return decode_bytes(value)
            elif kind == "object":
                return self._take(value)
            elif kind == "&object":
                self._live(value)
                return value
            elif kind == "&mut object":
                self.borrow_mut(value)
                return value
            elif kind == "receiving":
                if isinstance(value, ReceivingTicket):
                    return value
            elif kind == "upgrade_receipt":
                if isinstance(value, UpgradeReceipt):
                    return self._spend(value)
        except ValueError as exc:
            raise CommandError("TypeMismatch", str(exc)) from exc
        raise CommandError("TypeMismatch", f"argument does not match parameter kind {kind}")

    # -- commands ---------------------------------------------------------

    def run(self, command: Command) -> None:
        if isinstance(command, MoveCall):
            self.results.append(self._move_call(command))
        elif isinstance(command, TransferObjects):
            recipient = self._decode("address", self._argument(command.address))
            for arg in command.objects:
                self.transfer(self._take(self._argument(arg), allow_gas=True), recipient)
            self.results.append([])
        elif isinstance(command, SplitCoins):
            self.results.append(self._split_coins(command))
        elif isinstance(command, MergeCoins):
            self._merge_coins(command)
            self.results.append([])
        elif isinstance(command, MakeMoveVec):
            elements: list[Any] = []
            for arg in command.elements:
                value = self._argument(arg)
                elements.append(self._take(value) if isinstance(value, RuntimeObject) else value)
            self.results.append([elements])
        elif isinstance(command, Publish):
            self.results.append(self._publish(command))
        elif isinstance(command, Upgrade):
            self.results.append(self._upgrade(command))
        else:
            raise InvariantViolation(f"unhandled command {command!r}")

    def _move_call(self, command: MoveCall) -> list[Any]:
        native = self._env.natives.get(command.package, command.module, command.function)
        target = f"{command.package.short()}::{command.module}::{command.function}"
        if native is None:
            raise CommandError("FunctionNotFound", f"no executable function {target}")
        if len(command.arguments) != len(native.parameters):
            raise CommandError(
                "ArityMismatch",
                f"{target} expects {len(native.parameters)} argument(s), got {len(command.arguments)}",
            )
        decoded = [
            self._decode(kind, self._argument(arg)) for kind, arg in zip(native.parameters, command.arguments)
        ]
        self._current_package = command.package
        values = list(native.fn(self, *decoded))
        self._unspent.update(value for value in values if isinstance(value, (UpgradeTicket, UpgradeReceipt)))
        return values

    def _coin(self, value: Any, *, mutable: bool) -> Object:
        obj = self.borrow_mut(value) if mutable else self._live(value)
        if obj.type_tag != COIN_TYPE:
            raise CommandError("TypeMismatch", f"object {obj.id} is not a coin")
        return obj

    def _split_coins(self, command: SplitCoins) -> list[Any]:
        coin = self._coin(self._argument(command.coin), mutable=True)
        amounts = [self._decode("u64", self._argument(arg)) for arg in command.amounts]
        balance = int(coin.fields["balance"])
        if sum(amounts) > balance:
            raise CommandError("InsufficientCoinBalance", f"coin {coin.id} holds {balance}")
        coin.fields["balance"] = balance - sum(amounts)
        return [self.new_object(COIN_TYPE, {"balance": amount}) for amount in amounts]

    def _merge_coins(self, command: MergeCoins) -> None:
        destination = self._coin(self._argument(command.destination), mutable=True)
        for arg in command.sources:
            source = self._take(self._argument(arg))
            coin = self._coin(source, mutable=False)
            if coin.id == destination.id:
                raise CommandError("InvalidValueUsage", "cannot merge a coin into itself")
            destination.fields["balance"] = int(destination.fields["balance"]) + int(coin.fields["balance"])
            self.delete(source)

    def _spend(self, value: UpgradeTicket | UpgradeReceipt) -> UpgradeTicket | UpgradeReceipt:
        if value not in self._unspent:
            raise CommandError("ArgumentWithoutValue", f"{type(value).__name__} was already used")
        self._unspent.discard(value)
        return value

    def _check_dependencies(self, dependencies: tuple[ObjectID, ...]) -> None:
        for dependency in dependencies:
            package = self._reader.get_object(dependency)
            if package is None or package.type_tag != PACKAGE_TYPE:
                raise CommandError("PublishDependencyNotFound", f"dependency {dependency} is not a package")

    def _new_package(
        self, modules: tuple[tuple[str, str], ...], dependencies: tuple[ObjectID, ...], version: int
    ) -> ObjectID:
        object_id = self._fresh_id()
        self._objects[object_id] = Object(
            id=object_id,
            version=self._lamport,
            owner=Immutable(),
            type_tag=PACKAGE_TYPE,
            fields={
                "modules": {name: source for name, source in modules},
                "dependencies": [str(dep) for dep in dependencies],
                "package_version": version,
            },
            previous_transaction=self._digest,
        )
        self._access[object_id] = _NEW
        self._created.append(object_id)
        return object_id

    def _publish(self, command: Publish) -> list[Any]:
        self._check_dependencies(command.dependencies)
        package_id = self._new_package(command.modules, command.dependencies, 1)
        cap = self.new_object(UPGRADE_CAP_TYPE, {"package": package_id, "version": 1, "policy": 0})
        return [cap]

    def _upgrade(self, command: Upgrade) -> list[Any]:
        ticket = self._argument(command.ticket)
        if not isinstance(ticket, UpgradeTicket):
            raise CommandError("TypeMismatch", f"upgrade expects an upgrade ticket, found {ticket!r}")
        self._spend(ticket)
        if ticket.package != command.package:
            raise CommandError("PackageUpgradeError", f"ticket authorizes {ticket.package}, not {command.package}")
        if ticket.digest != command.digest().value:
            raise CommandError("PackageUpgradeError", "package digest does not match the upgrade ticket")
        current = self._reader.get_object(command.package)
        if current is None or current.type_tag != PACKAGE_TYPE:
            raise CommandError("PackageUpgradeError", f"{command.package} is not a package")
        self._check_dependencies(command.dependencies)
        _check_upgrade_policy(ticket.policy, current.fields["modules"], dict(command.modules))
        version = int(current.fields.get("package_version", 1)) + 1
        package_id = self._new_package(command.modules, command.dependencies, version)
        receipt = UpgradeReceipt(cap=ticket.cap, package=package_id)
        self._unspent.add(receipt)
        return [receipt]

    # -- finalization -----------------------------------------------------

    def finish(self) -> tuple[list[Object], list[ObjectID], list[ObjectRef]]:
        if self._pending:
            leftover = ", ".join(sorted(str(object_id) for object_id in self._pending))
            raise CommandError("UnusedValueWithoutDrop", f"objects left without an owner: {leftover}")
        if self._unspent:
            leftover = ", ".join(sorted(type(value).__name__ for value in self._unspent))
            raise CommandError("UnusedValueWithoutDrop", f"values left unspent: {leftover}")
        written: list[Object] = []
        created: list[ObjectID] = []
        for object_id, obj in self._objects.items():
            if object_id in self._deleted:
                continue
            access = self._access[object_id]
            if access in (_OWNED, _SHARED_MUT, _GAS) or object_id in self._touched or access == _NEW:
                obj.version = self._lamport
                obj.previous_transaction = self._digest
                written.append(obj)
        for object_id in self._created:
            if object_id not in self._deleted:
                created.append(object_id)
        deleted = [
            ObjectRef(object_id, self._lamport, DELETED_DIGEST)
            for object_id in sorted(self._deleted)
            if object_id not in self._created
        ]
        return written, created, deleted


def _check_upgrade_policy(policy: int, current: Mapping[str, str], upgraded: Mapping[str, str]) -> None:
    if policy not in UPGRADE_POLICIES.values():
        raise CommandError("PackageUpgradeError", f"unknown upgrade policy {policy}")
    removed = sorted(set(current) - set(upgraded))
    if removed:
        raise CommandError("PackageUpgradeError", f"upgrade removes module(s) {', '.join(removed)}")
    if policy >= UPGRADE_POLICIES["additive"]:
        changed = sorted(name for name, source in current.items() if upgraded[name] != source)
        if changed:
            raise CommandError("PackageUpgradeError", f"policy forbids changing module(s) {', '.join(changed)}")
    if policy >= UPGRADE_POLICIES["dep_only"]:
        added = sorted(set(upgraded) - set(current))
        if added:
            raise CommandError("PackageUpgradeError", f"policy forbids adding module(s) {', '.join(added)}")


def _computation_cost(transaction: ProgrammableTransaction, gas_price: int) -> int:
    return gas_price * (BASE_COMPUTATION_UNITS + COMMAND_COMPUTATION_UNITS * len(transaction.commands))


def _mutable_inputs(checked: _CheckedInputs, transaction: ProgrammableTransaction) -> list[Object]:
    # Versions of owned and mutably-shared inputs advance even when execution fails.
    mutable: list[Object] = []
    for call_arg, obj in zip(transaction.inputs, checked.objects):
        if obj is None or not isinstance(call_arg, ObjectInput):
            continue
        arg = call_arg.arg
        if isinstance(arg, SharedObject) and not arg.mutable:
            continue
        if isinstance(obj.owner, Immutable):
            continue
        mutable.append(obj)
    return mutable


def execute_transaction(
    reader: ObjectReader,
    transaction: Transaction,
    env: ExecutionEnvironment,
    *,
    shared_versions: Mapping[ObjectID, int] | None = None,
    dev_inspect: bool = False,
) -> ExecutionOutcome:
    data = transaction.data
    kind = data.kind
    if isinstance(kind, (ConsensusCommitPrologue, ChangeEpoch)):
        return _execute_system(reader, transaction, env)
    assert isinstance(kind, ProgrammableTransaction)

    digest = transaction.digest
    checked = check_inputs(reader, data, env, shared_versions=shared_versions, dev_inspect=dev_inspect)
    lamport = _lamport_version(checked)

    shared_refs = [
        obj.compute_object_reference()
        for call_arg, obj in zip(kind.inputs, checked.objects)
        if obj is not None and isinstance(call_arg, ObjectInput) and isinstance(call_arg.arg, SharedObject)
    ]
    dependencies = sorted(
        {obj.previous_transaction for obj in checked.objects if obj is not None}
        | {obj.previous_transaction for obj in checked.receivable.values()}
        | {obj.previous_transaction for obj in checked.gas},
        key=lambda item: item.value,
    )
    gas_budget = DEV_INSPECT_GAS_BUDGET if dev_inspect else data.gas_budget

    # Additional gas coins are smashed into the first one.
    primary_gas: Object | None = None
    smashed: list[Object] = []
    if checked.gas:
        primary_gas = checked.gas[0].copy()
        for extra in checked.gas[1:]:
            primary_gas.fields["balance"] = int(primary_gas.fields["balance"]) + int(extra.fields["balance"])
            smashed.append(extra)

    session = _Session(
        reader=reader,
        digest=digest,
        sender=data.sender,
        lamport=lamport,
        env=env,
        transaction=kind,
        checked=checked,
        gas_coin=primary_gas.copy() if primary_gas is not None else None,
    )

    failure: ExecutionFailure | None = None
    cost = _computation_cost(kind, data.gas_price)
    written: list[Object] = []
    created_ids: list[ObjectID] = []
    deleted: list[ObjectRef] = []
    events: list[Event] = []

    index = 0
    try:
        for index, command in enumerate(kind.commands):
            session.run(command)
        written, created_ids, deleted = session.finish()
        events = session.events
    except CommandError as exc:
        command_index = None if exc.kind == "UnusedValueWithoutDrop" else index
        failure = ExecutionFailure(kind=exc.kind, message=exc.message, command=command_index)

    if failure is None and cost > gas_budget:
        failure = ExecutionFailure(kind="InsufficientGas", message=f"computation cost {cost} exceeds budget {gas_budget}")

    if failure is not None:
        _log.debug("transaction %s failed: %s", digest, failure.describe())
        written = []
        for obj in _mutable_inputs(checked, kind):
            obj.version = lamport
            obj.previous_transaction = digest
            written.append(obj)
        created_ids = []
        deleted = []
        events = []
        if primary_gas is not None:
            written.append(primary_gas)

    gas_used = min(cost, gas_budget)
    if primary_gas is not None:
        charged = next(obj for obj in written if obj.id == primary_gas.id)
        balance = int(charged.fields["balance"])
        charged.fields["balance"] = max(0, balance - gas_used)
        charged.version = lamport
        charged.previous_transaction = digest
    for extra in smashed:
        deleted.append(ObjectRef(extra.id, lamport, DELETED_DIGEST))

    created_set = set(created_ids)
    written_by_id = {obj.id: obj for obj in written}
    created = [(written_by_id[object_id].compute_object_reference(), written_by_id[object_id].owner) for object_id in created_ids]
    mutated = [(obj.compute_object_reference(), obj.owner) for obj in written if obj.id not in created_set]

    effects = TransactionEffects(
        transaction_digest=digest,
        executed_epoch=env.epoch,
        lamport_version=lamport,
        gas_used=gas_used,
        status=failure,
        created=created,
        mutated=mutated,
        deleted=deleted,
        shared_objects=shared_refs,
        dependencies=dependencies,
        events_digest=Digest.of_data([event.to_dict() for event in events], domain="TransactionEvents") if events else None,
    )
    write_set = WriteSet(transaction=transaction, effects=effects, events=events, written=written, deleted=deleted)
    return ExecutionOutcome(write_set=write_set, failure=failure, results=session.results if failure is None else [])


def _execute_system(reader: ObjectReader, transaction: Transaction, env: ExecutionEnvironment) -> ExecutionOutcome:
    kind = transaction.data.kind
    digest = transaction.digest
    target_id = CLOCK_OBJECT_ID if isinstance(kind, ConsensusCommitPrologue) else SYSTEM_STATE_OBJECT_ID
    current = reader.get_object(target_id)
    if current is None:
        raise InvariantViolation(f"system object {target_id} is missing")
    shared_ref = current.compute_object_reference()
    updated = current.copy()
    if isinstance(kind, ConsensusCommitPrologue):
        updated.fields["timestamp_ms"] = kind.commit_timestamp_ms
    else:
        assert isinstance(kind, ChangeEpoch)
        updated.fields["epoch"] = kind.epoch
        updated.fields["epoch_start_timestamp_ms"] = kind.epoch_start_timestamp_ms
    updated.version = current.version + 1
    updated.previous_transaction = digest
    effects = TransactionEffects(
        transaction_digest=digest,
        executed_epoch=env.epoch,
        lamport_version=updated.version,
        mutated=[(updated.compute_object_reference(), updated.owner)],
        shared_objects=[shared_ref],
        dependencies=[current.previous_transaction],
    )
    return ExecutionOutcome(write_set=WriteSet(transaction=transaction, effects=effects, written=[updated]))


__all__ = [
    "DELETED_DIGEST",
    "ExecutionEnvironment",
    "ExecutionOutcome",
    "ObjectReader",
    "check_inputs",
    "execute_transaction",
]
