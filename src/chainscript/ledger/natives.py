"""Native function registry for ``MoveCall`` commands.

The ledger has no bytecode interpreter. A move call is dispatched to a Python
function registered under ``(package, module, function)`` together with the
parameter kinds the executor uses to decode and borrow its arguments.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from chainscript.types import Address, Object, ObjectID, ObjectRef

ParameterKind = Literal[
    "u64",
    "bool",
    "address",
    "vector<u8>",
    "object",
    "&object",
    "&mut object",
    "receiving",
    "upgrade_receipt",
]

PARAMETER_KINDS: tuple[ParameterKind, ...] = (
    "u64",
    "bool",
    "address",
    "vector<u8>",
    "object",
    "&object",
    "&mut object",
    "receiving",
    "upgrade_receipt",
)


class CommandError(Exception):
    """Aborts the current command; surfaces as an ``ExecutionFailure``."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class MoveAbort(CommandError):
    def __init__(self, module: str, code: int) -> None:
        super().__init__("MoveAbort", f"aborted in {module} with code {code}")
        self.module = module
        self.code = code


@dataclass(frozen=True, slots=True)
class RuntimeObject:
    object_id: ObjectID


@dataclass(frozen=True, slots=True)
class ReceivingTicket:
    object_ref: ObjectRef


@dataclass(frozen=True, slots=True)
class UpgradeTicket:
    """Permission to upgrade ``package``; must be spent by an ``Upgrade`` command."""

    cap: ObjectID
    package: ObjectID
    policy: int
    digest: bytes


@dataclass(frozen=True, slots=True)
class UpgradeReceipt:
    """Proof of an upgrade; must be spent by committing it to ``cap``."""

    cap: ObjectID
    package: ObjectID


class NativeContext(Protocol):
    sender: Address

    def new_object(self, type_tag: str, fields: dict[str, Any]) -> RuntimeObject: ...

    def borrow(self, value: RuntimeObject) -> Object: ...

    def borrow_mut(self, value: RuntimeObject) -> Object: ...

    def transfer(self, value: RuntimeObject, recipient: Address) -> None: ...

    def share(self, value: RuntimeObject) -> None: ...

    def freeze(self, value: RuntimeObject) -> None: ...

    def delete(self, value: RuntimeObject) -> None: ...

    def receive(self, parent: RuntimeObject, ticket: ReceivingTicket) -> RuntimeObject: ...

    def emit(self, module: str, type_name: str, fields: dict[str, Any]) -> None: ...


NativeFn = Callable[..., list[Any]]


@dataclass(frozen=True, slots=True)
class NativeFunction:
    package: ObjectID
    module: str
    name: str
    parameters: tuple[ParameterKind, ...]
    fn: NativeFn

    @property
    def target(self) -> str:
        return f"{self.package.short()}::{self.module}::{self.name}"


class NativeRegistry:
    def __init__(self) -> None:
        self._functions: dict[tuple[ObjectID, str, str], NativeFunction] = {}

    def register(
        self,
        package: ObjectID,
        module: str,
        name: str,
        parameters: tuple[ParameterKind, ...] = (),
    ) -> Callable[[NativeFn], NativeFn]:
        for kind in parameters:
            if kind not in PARAMETER_KINDS:
                raise ValueError(f"Unknown parameter kind: {kind}")

        def decorator(fn: NativeFn) -> NativeFn:
            key = (package, module, name)
            if key in self._functions:
                raise ValueError(f"Native {module}::{name} already registered for {package}")
            self._functions[key] = NativeFunction(package, module, name, parameters, fn)
            return fn

        return decorator

    def get(self, package: ObjectID, module: str, name: str) -> NativeFunction | None:
        return self._functions.get((package, module, name))

    def modules(self, package: ObjectID) -> set[str]:
        return {module for pkg, module, _name in self._functions if pkg == package}


__all__ = [
    "CommandError",
    "MoveAbort",
    "NativeContext",
    "NativeFunction",
    "NativeRegistry",
    "ParameterKind",
    "ReceivingTicket",
    "RuntimeObject",
    "UpgradeReceipt",
    "UpgradeTicket",
]
