"""Versioned object storage plus the transaction, effects and event tables."""
from __future__ import annotations

from dataclasses import dataclass, field

from chainscript.effects import Event, TransactionEffects
from chainscript.errors import InvariantViolation
from chainscript.transaction import Transaction
from chainscript.types import Digest, Object, ObjectID, ObjectRef


@dataclass(slots=True)
class WriteSet:
    """Everything one executed transaction commits."""

    transaction: Transaction
    effects: TransactionEffects
    events: list[Event] = field(default_factory=list)
    written: list[Object] = field(default_factory=list)
    deleted: list[ObjectRef] = field(default_factory=list)


class InMemoryStore:
    def __init__(self, objects: list[Object] | None = None) -> None:
        self._versions: dict[ObjectID, dict[int, Object]] = {}
        self._latest: dict[ObjectID, int] = {}
        self._transactions: dict[Digest, Transaction] = {}
        self._effects: dict[Digest, TransactionEffects] = {}
        self._events: dict[Digest, list[Event]] = {}
        self._order: list[Digest] = []
        for obj in objects or []:
            self.insert_object(obj)

    def get_object(self, object_id: ObjectID) -> Object | None:
        version = self._latest.get(object_id)
        if version is None:
            return None
        return self._versions[object_id][version]

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None:
        return self._versions.get(object_id, {}).get(version)

    def insert_object(self, obj: Object) -> None:
        history = self._versions.setdefault(obj.id, {})
        if obj.version in history:
            raise InvariantViolation(f"object {obj.id} already stored at version {obj.version}")
        history[obj.version] = obj
        self._latest[obj.id] = obj.version

    def apply(self, write_set: WriteSet) -> None:
        digest = write_set.transaction.digest
        if digest in self._effects:
            raise InvariantViolation(f"transaction {digest} executed twice")
        for obj in write_set.written:
            self.insert_object(obj)
        for ref in write_set.deleted:
            # History stays readable by version; only the latest pointer goes.
            self._latest.pop(ref.object_id, None)
        self._transactions[digest] = write_set.transaction
        self._effects[digest] = write_set.effects
        self._events[digest] = list(write_set.events)
        self._order.append(digest)

    def get_transaction(self, digest: Digest) -> Transaction | None:
        return self._transactions.get(digest)

    def get_effects(self, digest: Digest) -> TransactionEffects | None:
        return self._effects.get(digest)

    def get_transaction_events(self, digest: Digest) -> list[Event] | None:
        events = self._events.get(digest)
        return None if events is None else list(events)

    def executed_transactions(self) -> list[Digest]:
        return list(self._order)

    def live_objects(self) -> list[Object]:
        return [self._versions[object_id][version] for object_id, version in self._latest.items()]


__all__ = ["InMemoryStore", "WriteSet"]
