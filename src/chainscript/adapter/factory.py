"""Builds a backend and its funded accounts from a seed."""
from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from chainscript.adapter.base import TransactionalAdapter
from chainscript.adapter.simulator import Simulator
from chainscript.adapter.validator import ValidatorWithFullnode
from chainscript.constants import BACKEND_SIMULATOR, BACKEND_VALIDATOR, BACKENDS, DEFAULT_ACCOUNT_BALANCE
from chainscript.ledger.framework import framework_natives
from chainscript.ledger.genesis import build_genesis, genesis_coin_id
from chainscript.ledger.natives import NativeRegistry
from chainscript.types import Address, Object, ObjectID

_log = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "default"


@dataclass(frozen=True, slots=True)
class Account:
    name: str
    address: Address
    gas_coin: ObjectID


@dataclass(slots=True)
class Network:
    adapter: TransactionalAdapter
    default_account: Account
    accounts: dict[str, Account] = field(default_factory=dict)
    genesis: list[Object] = field(default_factory=list)

    def account(self, name: str) -> Account | None:
        if name == DEFAULT_ACCOUNT_NAME:
            return self.default_account
        return self.accounts.get(name)


def build_network(
    backend: str,
    *,
    account_names: Sequence[str] = (),
    seed: int = 0,
    max_gas: int,
    gas_price: int,
    account_balance: int = DEFAULT_ACCOUNT_BALANCE,
    natives: NativeRegistry | None = None,
) -> Network:
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}")
    if len(set(account_names)) != len(account_names):
        raise ValueError("Account names must be unique")
    if DEFAULT_ACCOUNT_NAME in account_names:
        raise ValueError(f"Account name {DEFAULT_ACCOUNT_NAME!r} is reserved")
    rng = random.Random(seed)
    names = [*account_names, DEFAULT_ACCOUNT_NAME]
    addresses = [Address.random(rng) for _ in names]
    faucet = Address.random(rng)
    funded = [(address, account_balance) for address in addresses]
    genesis = build_genesis(funded, faucet=faucet if backend == BACKEND_SIMULATOR else None)

    accounts = {
        name: Account(name=name, address=address, gas_coin=genesis_coin_id(address, index))
        for index, (name, address) in enumerate(zip(names, addresses))
    }
    default_account = accounts.pop(DEFAULT_ACCOUNT_NAME)
    registry = natives if natives is not None else framework_natives()

    adapter: TransactionalAdapter
    if backend == BACKEND_VALIDATOR:
        adapter = ValidatorWithFullnode(genesis, registry, max_gas=max_gas, reference_gas_price=gas_price)
    else:
        adapter = Simulator(genesis, registry, faucet=faucet, max_gas=max_gas, reference_gas_price=gas_price)
    _log.debug("built %s network with %d account(s), seed %d", backend, len(accounts), seed)
    return Network(adapter=adapter, default_account=default_account, accounts=accounts, genesis=genesis)


__all__ = ["DEFAULT_ACCOUNT_NAME", "Account", "Network", "build_network"]
