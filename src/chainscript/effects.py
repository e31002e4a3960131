from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from chainscript.errors import ExecutionFailure
from chainscript.types import Address, Digest, ObjectID, ObjectRef, Owner


@dataclass(slots=True)
class Event:
    package_id: ObjectID
    module: str
    sender: Address
    type_tag: str
    fields: dict[str, Any]
    tx_digest: Digest
    event_seq: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_id": str(self.package_id),
            "module": self.module,
            "sender": str(self.sender),
            "type": self.type_tag,
            "fields": self.fields,
            "tx_digest": str(self.tx_digest),
            "event_seq": self.event_seq,
        }


@dataclass(slots=True)
class TransactionEffects:
    transaction_digest: Digest
    executed_epoch: int
    lamport_version: int
    gas_used: int = 0
    status: ExecutionFailure | None = None
    created: list[tuple[ObjectRef, Owner]] = field(default_factory=list)
    mutated: list[tuple[ObjectRef, Owner]] = field(default_factory=list)
    deleted: list[ObjectRef] = field(default_factory=list)
    shared_objects: list[ObjectRef] = field(default_factory=list)
    dependencies: list[Digest] = field(default_factory=list)
    events_digest: Digest | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is None

    def digest(self) -> Digest:
        return Digest.of_data(self.to_dict(), domain="TransactionEffects")

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_digest": str(self.transaction_digest),
            "executed_epoch": self.executed_epoch,
            "lamport_version": self.lamport_version,
            "gas_used": self.gas_used,
            "status": "success" if self.status is None else self.status.to_dict(),
            "created": [{"ref": ref.to_dict(), "owner": owner.to_dict()} for ref, owner in self.created],
            "mutated": [{"ref": ref.to_dict(), "owner": owner.to_dict()} for ref, owner in self.mutated],
            "deleted": [ref.to_dict() for ref in self.deleted],
            "shared_objects": [ref.to_dict() for ref in self.shared_objects],
            "dependencies": [str(dep) for dep in self.dependencies],
            "events_digest": None if self.events_digest is None else str(self.events_digest),
        }


@dataclass(slots=True)
class DevInspectResults:
    effects: TransactionEffects
    events: list[Event] = field(default_factory=list)
    results: list[list[Any]] = field(default_factory=list)
    error: str | None = None


__all__ = ["DevInspectResults", "Event", "TransactionEffects"]
