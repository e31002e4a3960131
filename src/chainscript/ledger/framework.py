"""Natives published at the framework address ``0x2``."""
from __future__ import annotations

from typing import Any

from chainscript.ledger.genesis import CLOCK_TYPE, COIN_TYPE, FRAMEWORK_PACKAGE_ID, UPGRADE_CAP_TYPE
from chainscript.ledger.natives import (
    CommandError,
    MoveAbort,
    NativeContext,
    NativeRegistry,
    ReceivingTicket,
    RuntimeObject,
    UpgradeReceipt,
    UpgradeTicket,
)
from chainscript.types import Address, Object

OBJECT_TYPE = "0x2::object_basics::Object"
NEW_VALUE_EVENT = "NewValueEvent"

# Upgrade policies, from most to least permissive. A cap can only become stricter.
UPGRADE_POLICIES = {"compatible": 0, "additive": 128, "dep_only": 192}

E_TOO_PERMISSIVE = 1
E_ALREADY_AUTHORIZED = 2
E_WRONG_UPGRADE_CAP = 4

_NO_PACKAGE = Address.from_int(0)


def _expect_type(obj: Object, type_tag: str) -> Object:
    if obj.type_tag != type_tag:
        raise CommandError("TypeMismatch", f"expected {type_tag}, found {obj.type_tag}")
    return obj


def _restrict_policy(ctx: NativeContext, cap: RuntimeObject, policy: int) -> None:
    obj = _expect_type(ctx.borrow_mut(cap), UPGRADE_CAP_TYPE)
    if policy < obj.fields["policy"]:
        raise MoveAbort("package", E_TOO_PERMISSIVE)
    obj.fields["policy"] = policy


def register_framework(registry: NativeRegistry) -> NativeRegistry:
    pkg = FRAMEWORK_PACKAGE_ID

    @registry.register(pkg, "object_basics", "create", ("u64", "address"))
    def create(ctx: NativeContext, value: int, recipient: Address) -> list[Any]:
        ctx.transfer(ctx.new_object(OBJECT_TYPE, {"value": value}), recipient)
        return []

    @registry.register(pkg, "object_basics", "new", ("u64",))
    def new(ctx: NativeContext, value: int) -> list[Any]:
        return [ctx.new_object(OBJECT_TYPE, {"value": value})]

    @registry.register(pkg, "object_basics", "transfer", ("object", "address"))
    def transfer(ctx: NativeContext, obj: RuntimeObject, recipient: Address) -> list[Any]:
        ctx.transfer(obj, recipient)
        return []

    @registry.register(pkg, "object_basics", "share", ("object",))
    def share(ctx: NativeContext, obj: RuntimeObject) -> list[Any]:
        ctx.share(obj)
        return []

    @registry.register(pkg, "object_basics", "freeze_object", ("object",))
    def freeze_object(ctx: NativeContext, obj: RuntimeObject) -> list[Any]:
        ctx.freeze(obj)
        return []

    @registry.register(pkg, "object_basics", "delete", ("object",))
    def delete(ctx: NativeContext, obj: RuntimeObject) -> list[Any]:
        _expect_type(ctx.borrow(obj), OBJECT_TYPE)
        ctx.delete(obj)
        return []

    @registry.register(pkg, "object_basics", "set_value", ("&mut object", "u64"))
    def set_value(ctx: NativeContext, obj: RuntimeObject, value: int) -> list[Any]:
        _expect_type(ctx.borrow_mut(obj), OBJECT_TYPE).fields["value"] = value
        return []

    @registry.register(pkg, "object_basics", "update", ("&mut object", "&object"))
    def update(ctx: NativeContext, target: RuntimeObject, source: RuntimeObject) -> list[Any]:
        new_value = _expect_type(ctx.borrow(source), OBJECT_TYPE).fields["value"]
        _expect_type(ctx.borrow_mut(target), OBJECT_TYPE).fields["value"] = new_value
        ctx.emit("object_basics", NEW_VALUE_EVENT, {"new_value": new_value})
        return []

    @registry.register(pkg, "object_basics", "value", ("&object",))
    def value(ctx: NativeContext, obj: RuntimeObject) -> list[Any]:
        return [_expect_type(ctx.borrow(obj), OBJECT_TYPE).fields["value"]]

    @registry.register(pkg, "object_basics", "emit", ("u64",))
    def emit(ctx: NativeContext, new_value: int) -> list[Any]:
        ctx.emit("object_basics", NEW_VALUE_EVENT, {"new_value": new_value})
        return []

    @registry.register(pkg, "object_basics", "abort_with", ("u64",))
    def abort_with(ctx: NativeContext, code: int) -> list[Any]:
        raise MoveAbort("object_basics", code)

    @registry.register(pkg, "object_basics", "receive", ("&mut object", "receiving"))
    def receive(ctx: NativeContext, parent: RuntimeObject, ticket: ReceivingTicket) -> list[Any]:
        return [ctx.receive(parent, ticket)]

    @registry.register(pkg, "coin", "value", ("&object",))
    def coin_value(ctx: NativeContext, coin: RuntimeObject) -> list[Any]:
        return [_expect_type(ctx.borrow(coin), COIN_TYPE).fields["balance"]]

    @registry.register(pkg, "clock", "timestamp_ms", ("&object",))
    def timestamp_ms(ctx: NativeContext, clock: RuntimeObject) -> list[Any]:
        return [_expect_type(ctx.borrow(clock), CLOCK_TYPE).fields["timestamp_ms"]]

    @registry.register(pkg, "package", "make_immutable", ("object",))
    def make_immutable(ctx: NativeContext, cap: RuntimeObject) -> list[Any]:
        _expect_type(ctx.borrow(cap), UPGRADE_CAP_TYPE)
        ctx.delete(cap)
        return []

    @registry.register(pkg, "package", "only_additive_upgrades", ("&mut object",))
    def only_additive_upgrades(ctx: NativeContext, cap: RuntimeObject) -> list[Any]:
        _restrict_policy(ctx, cap, UPGRADE_POLICIES["additive"])
        return []

    @registry.register(pkg, "package", "only_dep_upgrades", ("&mut object",))
    def only_dep_upgrades(ctx: NativeContext, cap: RuntimeObject) -> list[Any]:
        _restrict_policy(ctx, cap, UPGRADE_POLICIES["dep_only"])
        return []

    @registry.register(pkg, "package", "authorize_upgrade", ("&mut object", "u64", "vector<u8>"))
    def authorize_upgrade(ctx: NativeContext, cap: RuntimeObject, policy: int, digest: bytes) -> list[Any]:
        obj = _expect_type(ctx.borrow_mut(cap), UPGRADE_CAP_TYPE)
        if obj.fields["package"] == _NO_PACKAGE:
            raise MoveAbort("package", E_ALREADY_AUTHORIZED)
        if policy < obj.fields["policy"]:
            raise MoveAbort("package", E_TOO_PERMISSIVE)
        ticket = UpgradeTicket(cap=obj.id, package=obj.fields["package"], policy=policy, digest=digest)
        obj.fields["package"] = _NO_PACKAGE
        return [ticket]

    @registry.register(pkg, "package", "commit_upgrade", ("&mut object", "upgrade_receipt"))
    def commit_upgrade(ctx: NativeContext, cap: RuntimeObject, receipt: UpgradeReceipt) -> list[Any]:
        obj = _expect_type(ctx.borrow_mut(cap), UPGRADE_CAP_TYPE)
        if receipt.cap != obj.id:
            raise MoveAbort("package", E_WRONG_UPGRADE_CAP)
        obj.fields["package"] = receipt.package
        obj.fields["version"] = obj.fields["version"] + 1
        return []

    return registry


def framework_natives() -> NativeRegistry:
    return register_framework(NativeRegistry())


__all__ = [
    "E_ALREADY_AUTHORIZED",
    "E_TOO_PERMISSIVE",
    "E_WRONG_UPGRADE_CAP",
    "NEW_VALUE_EVENT",
    "OBJECT_TYPE",
    "UPGRADE_POLICIES",
    "framework_natives",
    "register_framework",
]
