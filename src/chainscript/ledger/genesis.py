"""Well-known objects every ledger starts from."""
from __future__ import annotations

from collections.abc import Sequence

from chainscript.canonical import blake2b_256
from chainscript.constants import FAUCET_BALANCE
from chainscript.types import (
    GENESIS_DIGEST,
    PACKAGE_TYPE,
    Address,
    AddressOwner,
    Immutable,
    Object,
    ObjectID,
    Shared,
)

STD_PACKAGE_ID = Address.from_int(1)
FRAMEWORK_PACKAGE_ID = Address.from_int(2)
SYSTEM_STATE_OBJECT_ID = Address.from_int(5)
CLOCK_OBJECT_ID = Address.from_int(6)

GENESIS_VERSION = 1
COIN_TYPE = "0x2::coin::Coin<0x2::sui::SUI>"
CLOCK_TYPE = "0x2::clock::Clock"
UPGRADE_CAP_TYPE = "0x2::package::UpgradeCap"
SYSTEM_STATE_TYPE = "0x3::sui_system::SuiSystemState"

FRAMEWORK_MODULES = ("clock", "coin", "object_basics", "package")


def gas_coin(object_id: ObjectID, owner: Address, balance: int, version: int = GENESIS_VERSION) -> Object:
    return Object(
        id=object_id,
        version=version,
        owner=AddressOwner(owner),
        type_tag=COIN_TYPE,
        fields={"balance": balance},
        previous_transaction=GENESIS_DIGEST,
    )


def genesis_coin_id(owner: Address, index: int) -> ObjectID:
    return Address(blake2b_256(b"genesis-coin", owner.value, index.to_bytes(8, "little")))


def build_genesis(
    accounts: Sequence[tuple[Address, int]],
    *,
    faucet: Address | None = None,
    timestamp_ms: int = 0,
) -> list[Object]:
    objects = [
        Object(
            id=STD_PACKAGE_ID,
            version=GENESIS_VERSION,
            owner=Immutable(),
            type_tag=PACKAGE_TYPE,
            fields={"modules": {}, "dependencies": []},
        ),
        Object(
            id=FRAMEWORK_PACKAGE_ID,
            version=GENESIS_VERSION,
            owner=Immutable(),
            type_tag=PACKAGE_TYPE,
            fields={"modules": {name: "native" for name in FRAMEWORK_MODULES}, "dependencies": []},
        ),
        Object(
            id=SYSTEM_STATE_OBJECT_ID,
            version=GENESIS_VERSION,
            owner=Shared(GENESIS_VERSION),
            type_tag=SYSTEM_STATE_TYPE,
            fields={"epoch": 0, "epoch_start_timestamp_ms": timestamp_ms},
        ),
        Object(
            id=CLOCK_OBJECT_ID,
            version=GENESIS_VERSION,
            owner=Shared(GENESIS_VERSION),
            type_tag=CLOCK_TYPE,
            fields={"timestamp_ms": timestamp_ms},
        ),
    ]
    for index, (address, balance) in enumerate(accounts):
        objects.append(gas_coin(genesis_coin_id(address, index), address, balance))
    if faucet is not None:
        objects.append(gas_coin(genesis_coin_id(faucet, len(accounts)), faucet, FAUCET_BALANCE))
    return objects


__all__ = [
    "CLOCK_OBJECT_ID",
    "CLOCK_TYPE",
    "COIN_TYPE",
    "FRAMEWORK_MODULES",
    "FRAMEWORK_PACKAGE_ID",
    "GENESIS_VERSION",
    "STD_PACKAGE_ID",
    "SYSTEM_STATE_OBJECT_ID",
    "SYSTEM_STATE_TYPE",
    "UPGRADE_CAP_TYPE",
    "build_genesis",
    "gas_coin",
    "genesis_coin_id",
]
