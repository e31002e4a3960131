"""The scenario-state contract consumed by the resolver."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from chainscript.canonical import blake2b_256
from chainscript.types import Handle, Object, ObjectID


@dataclass(slots=True)
class StagedPackage:
    """A package declared by a script but not yet published."""

    name: str
    modules: dict[str, str]
    dependencies: list[ObjectID] = field(default_factory=list)
    digest: bytes = b""

    def __post_init__(self) -> None:
        if not self.digest:
            self.digest = compute_package_digest(self.modules, self.dependencies)


def compute_package_digest(modules: dict[str, str], dependencies: list[ObjectID]) -> bytes:
    parts: list[bytes] = []
    for name in sorted(modules):
        parts.append(blake2b_256(name.encode("utf-8"), b"\0", modules[name].encode("utf-8")))
    for dependency in sorted(dependencies):
        parts.append(dependency.value)
    return blake2b_256(*parts)


@runtime_checkable
class ScenarioState(Protocol):
    """Handle table, staged-package table and object storage of one scenario."""

    def resolve_handle(self, handle: Handle) -> ObjectID | None: ...

    def lookup_staged_package(self, name: str) -> StagedPackage | None: ...

    def get_object(self, object_id: ObjectID) -> Object | None: ...

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None: ...


__all__ = ["ScenarioState", "StagedPackage", "compute_package_digest"]
