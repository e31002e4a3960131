"""Ledger identities: addresses, digests, object references, owners, objects, handles."""
from __future__ import annotations

import copy
import random
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from chainscript.canonical import DIGEST_LENGTH, digest_of_data

ADDRESS_LENGTH = 32


@dataclass(frozen=True, slots=True, order=True)
class Address:
    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != ADDRESS_LENGTH:
            raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(self.value)}")

    @classmethod
    def from_hex(cls, raw: str) -> Address:
        text = raw[2:] if raw.lower().startswith("0x") else raw
        if not text or len(text) > ADDRESS_LENGTH * 2:
            raise ValueError(f"Invalid address literal: {raw}")
        return cls(bytes.fromhex(text.zfill(ADDRESS_LENGTH * 2)))

    @classmethod
    def from_int(cls, value: int) -> Address:
        return cls(value.to_bytes(ADDRESS_LENGTH, "big"))

    @classmethod
    def random(cls, rng: random.Random) -> Address:
        return cls(rng.getrandbits(ADDRESS_LENGTH * 8).to_bytes(ADDRESS_LENGTH, "big"))

    def to_hex(self) -> str:
        return "0x" + self.value.hex()

    def short(self) -> str:
        stripped = self.value.hex().lstrip("0")
        return "0x" + (stripped or "0")

    def __str__(self) -> str:
        return self.to_hex()


ObjectID = Address
ZERO_ADDRESS = Address(bytes(ADDRESS_LENGTH))


@dataclass(frozen=True, slots=True)
class Digest:
    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != DIGEST_LENGTH:
            raise ValueError(f"Digest must be {DIGEST_LENGTH} bytes, got {len(self.value)}")

    @classmethod
    def of_data(cls, value: Any, *, domain: str) -> Digest:
        return cls(digest_of_data(value, domain=domain))

    def __str__(self) -> str:
        return self.value.hex()


GENESIS_DIGEST = Digest(bytes(DIGEST_LENGTH))


class ObjectRef(NamedTuple):
    object_id: ObjectID
    version: int
    digest: Digest

    def to_dict(self) -> dict[str, Any]:
        return {"object_id": str(self.object_id), "version": self.version, "digest": str(self.digest)}


@dataclass(frozen=True, slots=True)
class AddressOwner:
    address: Address

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "address", "address": str(self.address)}


@dataclass(frozen=True, slots=True)
class ObjectOwner:
    address: Address

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "object", "address": str(self.address)}


@dataclass(frozen=True, slots=True)
class Shared:
    initial_shared_version: int

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "shared", "initial_shared_version": self.initial_shared_version}


@dataclass(frozen=True, slots=True)
class Immutable:
    def to_dict(self) -> dict[str, Any]:
        return {"kind": "immutable"}


Owner = AddressOwner | ObjectOwner | Shared | Immutable

PACKAGE_TYPE = "package"


@dataclass(slots=True)
class Object:
    id: ObjectID
    version: int
    owner: Owner
    type_tag: str
    fields: dict[str, Any] = field(default_factory=dict)
    previous_transaction: Digest = GENESIS_DIGEST

    @property
    def is_package(self) -> bool:
        return self.type_tag == PACKAGE_TYPE

    @property
    def is_shared(self) -> bool:
        return isinstance(self.owner, Shared)

    @property
    def is_immutable(self) -> bool:
        return isinstance(self.owner, Immutable)

    def digest(self) -> Digest:
        return Digest.of_data(self.to_dict(), domain="Object")

    def compute_object_reference(self) -> ObjectRef:
        return ObjectRef(self.id, self.version, self.digest())

    def copy(self) -> Object:
        return Object(
            id=self.id,
            version=self.version,
            owner=self.owner,
            type_tag=self.type_tag,
            fields=copy.deepcopy(self.fields),
            previous_transaction=self.previous_transaction,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "version": self.version,
            "owner": self.owner.to_dict(),
            "type": self.type_tag,
            "fields": self.fields,
            "previous_transaction": str(self.previous_transaction),
        }


@dataclass(frozen=True, slots=True)
class EnumeratedHandle:
    """The ``index``-th object created by script task ``task``."""

    task: int
    index: int

    def __str__(self) -> str:
        return f"{self.task},{self.index}"


@dataclass(frozen=True, slots=True)
class KnownHandle:
    object_id: ObjectID

    def __str__(self) -> str:
        return str(self.object_id)


Handle = EnumeratedHandle | KnownHandle
