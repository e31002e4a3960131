"""Single-process deterministic backend with full control over time and gas."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta

from chainscript.bcs import encode_uint
from chainscript.constants import BACKEND_SIMULATOR, DEFAULT_GAS_BUDGET
from chainscript.effects import DevInspectResults, Event, TransactionEffects
from chainscript.errors import BackendError, ExecutionFailure, InvariantViolation
from chainscript.ledger.authority import AuthorityState
from chainscript.ledger.checkpoint import CheckpointBuilder, VerifiedCheckpoint
from chainscript.ledger.genesis import COIN_TYPE
from chainscript.ledger.natives import NativeRegistry
from chainscript.transaction import (
    ChangeEpoch,
    ConsensusCommitPrologue,
    GasCoin,
    NestedResult,
    ProgrammableTransaction,
    ProgrammableTransactionBuilder,
    SplitCoins,
    Transaction,
    TransactionData,
    TransferObjects,
)
from chainscript.types import ZERO_ADDRESS, Address, AddressOwner, Digest, Object, ObjectID

_log = logging.getLogger(__name__)


class Simulator:
    mode = BACKEND_SIMULATOR

    def __init__(
        self,
        genesis: Iterable[Object],
        natives: NativeRegistry,
        *,
        faucet: Address,
        max_gas: int,
        reference_gas_price: int,
    ) -> None:
        self.authority = AuthorityState("simulator", genesis, natives, max_gas=max_gas)
        self.faucet = faucet
        self.reference_gas_price = reference_gas_price
        self._max_gas = max_gas
        self._round = 0
        self.checkpoints = CheckpointBuilder()
        self.checkpoints.seal(epoch=self.authority.epoch, timestamp_ms=self.authority.timestamp_ms)

    def _commit(self, transaction: Transaction) -> tuple[TransactionEffects, ExecutionFailure | None]:
        if transaction.data.is_system():
            outcome = self.authority.execute_system_transaction(transaction)
        else:
            certificate = self.authority.handle_transaction(transaction)
            shared_versions = self.authority.assign_shared_versions(transaction)
            outcome = self.authority.execute_certificate(certificate, shared_versions=shared_versions)
        self.checkpoints.record(outcome.effects)
        return outcome.effects, outcome.failure

    def execute_txn(self, transaction: Transaction) -> tuple[TransactionEffects, ExecutionFailure | None]:
        return self._commit(transaction)

    def create_checkpoint(self) -> VerifiedCheckpoint:
        return self.checkpoints.seal(epoch=self.authority.epoch, timestamp_ms=self.authority.timestamp_ms)

    def advance_clock(self, duration: timedelta) -> TransactionEffects:
        if duration < timedelta(0):
            raise InvariantViolation("the clock cannot move backwards")
        return self.consensus_commit_prologue(self.authority.timestamp_ms + duration // timedelta(milliseconds=1))

    def consensus_commit_prologue(self, timestamp_ms: int) -> TransactionEffects:
        if timestamp_ms < self.authority.timestamp_ms:
            raise InvariantViolation("the clock cannot move backwards")
        self._round += 1
        prologue = ConsensusCommitPrologue(
            epoch=self.authority.epoch,
            round=self._round,
            commit_timestamp_ms=timestamp_ms,
        )
        effects, _failure = self._commit(Transaction(TransactionData(kind=prologue, sender=ZERO_ADDRESS)))
        return effects

    def advance_epoch(self) -> None:
        closing = self.authority.epoch
        timestamp_ms = self.authority.timestamp_ms
        change = ChangeEpoch(epoch=closing + 1, epoch_start_timestamp_ms=timestamp_ms)
        self._commit(Transaction(TransactionData(kind=change, sender=ZERO_ADDRESS)))
        self.checkpoints.seal(epoch=closing, timestamp_ms=timestamp_ms, end_of_epoch=True)
        _log.debug("advanced to epoch %d", closing + 1)

    def _faucet_coin(self) -> Object:
        for obj in self.authority.store.live_objects():
            if obj.type_tag == COIN_TYPE and obj.owner == AddressOwner(self.faucet):
                return obj
        raise BackendError(f"faucet {self.faucet} has no gas coin")

    def request_gas(self, address: Address, amount: int) -> TransactionEffects:
        coin = self._faucet_coin()
        builder = ProgrammableTransactionBuilder()
        amount_arg = builder.pure(encode_uint(amount, 64))
        recipient_arg = builder.pure(address.value)
        builder.command(SplitCoins(GasCoin(), (amount_arg,)))
        builder.command(TransferObjects((NestedResult(0, 0),), recipient_arg))
        data = TransactionData(
            kind=builder.finish(),
            sender=self.faucet,
            gas_payment=[coin.compute_object_reference()],
            gas_budget=min(DEFAULT_GAS_BUDGET, self._max_gas),
            gas_price=self.reference_gas_price,
        )
        effects, failure = self._commit(Transaction(data))
        if failure is not None:
            raise BackendError(f"faucet request for {address} failed: {failure.describe()}")
        return effects

    def dev_inspect_transaction_block(
        self,
        sender: Address,
        transaction_kind: ProgrammableTransaction,
        gas_price: int | None,
    ) -> DevInspectResults:
        price = self.reference_gas_price if gas_price is None else gas_price
        return self.authority.dev_inspect(sender, transaction_kind, price)

    def query_tx_events_asc(self, digest: Digest, limit: int) -> list[Event]:
        return self.authority.query_tx_events(digest, limit)

    def get_object(self, object_id: ObjectID) -> Object | None:
        return self.authority.get_object(object_id)

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None:
        return self.authority.get_object_by_key(object_id, version)


__all__ = ["Simulator"]
