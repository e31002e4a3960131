"""Turns symbolic values into transaction inputs and builder arguments.

Nothing here caches: every call re-reads the handle table, the staged-package
table and object storage through the ``ScenarioState`` it is given.
"""
from __future__ import annotations

import logging

from chainscript.bcs import encode_bytes
from chainscript.errors import (
    BackendError,
    InvariantViolation,
    ObjectLoadError,
    ObjVecInputError,
    UnboundStagedPackageError,
    UnknownObjectError,
)
from chainscript.scenario.state import ScenarioState
from chainscript.transaction import (
    Argument,
    CallArg,
    ImmOrOwnedObject,
    ObjectArg,
    ObjectInput,
    ProgrammableTransactionBuilder,
    Pure,
    Receiving,
    SharedObject,
)
from chainscript.types import Handle, Object, Shared
from chainscript.values.move_value import simple_serialize
from chainscript.values.symbolic import (
    DigestValue,
    ObjectValue,
    ObjVecValue,
    PlainValue,
    ReceivingValue,
    SymbolicValue,
)

_log = logging.getLogger(__name__)


def resolve_object(handle: Handle, version: int | None, state: ScenarioState) -> Object:
    object_id = state.resolve_handle(handle)
    if object_id is None:
        raise UnknownObjectError(handle)
    try:
        if version is not None:
            obj = state.get_object_by_key(object_id, version)
        else:
            obj = state.get_object(object_id)
    except BackendError as exc:
        raise ObjectLoadError(object_id, version) from exc
    if obj is None:
        raise ObjectLoadError(object_id, version)
    return obj


def object_arg(handle: Handle, version: int | None, state: ScenarioState) -> ObjectArg:
    obj = resolve_object(handle, version, state)
    owner = obj.owner
    if isinstance(owner, Shared):
        return SharedObject(
            object_id=obj.id,
            initial_shared_version=owner.initial_shared_version,
            mutable=True,
        )
    return ImmOrOwnedObject(obj.compute_object_reference())


def receiving_arg(handle: Handle, version: int | None, state: ScenarioState) -> ObjectArg:
    obj = resolve_object(handle, version, state)
    return Receiving(obj.compute_object_reference())


def staged_digest_arg(name: str, state: ScenarioState) -> CallArg:
    staged = state.lookup_staged_package(name)
    if staged is None:
        raise UnboundStagedPackageError(name)
    return Pure(encode_bytes(staged.digest))


def into_call_arg(value: SymbolicValue, state: ScenarioState) -> CallArg:
    if isinstance(value, PlainValue):
        return Pure(simple_serialize(value.value))
    if isinstance(value, ObjectValue):
        return ObjectInput(object_arg(value.handle, value.version, state))
    if isinstance(value, ReceivingValue):
        return ObjectInput(receiving_arg(value.handle, value.version, state))
    if isinstance(value, ObjVecValue):
        raise ObjVecInputError()
    if isinstance(value, DigestValue):
        return staged_digest_arg(value.package, state)
    raise InvariantViolation(f"unhandled symbolic value {value!r}")


def into_argument(
    value: SymbolicValue,
    builder: ProgrammableTransactionBuilder,
    state: ScenarioState,
) -> Argument:
    if isinstance(value, ObjVecValue):
        # Resolve every element before touching the builder so a failure
        # leaves no half-registered inputs behind.
        resolved: list[ObjectArg] = []
        for element in value.elements:
            if not isinstance(element, ObjectValue):
                raise InvariantViolation(f"object vector holds a non-object element: {element!r}")
            resolved.append(object_arg(element.handle, element.version, state))
        _log.debug("registering object vector of %d element(s)", len(resolved))
        return builder.make_obj_vec(resolved)
    return builder.input(into_call_arg(value, state))


__all__ = [
    "into_argument",
    "into_call_arg",
    "object_arg",
    "receiving_arg",
    "resolve_object",
    "staged_digest_arg",
]
