"""Validator plus fullnode backend.

Every certificate executes on the validator and is replayed on the fullnode;
reads, dev-inspect and event queries are served by the fullnode. Checkpoint,
clock, epoch and faucet control are not available in this mode.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta

from chainscript.constants import BACKEND_VALIDATOR
from chainscript.effects import DevInspectResults, Event, TransactionEffects
from chainscript.errors import BackendError, ExecutionFailure, OperationNotSupported, TransactionRejected
from chainscript.ledger.authority import AuthorityState
from chainscript.ledger.checkpoint import VerifiedCheckpoint
from chainscript.ledger.natives import NativeRegistry
from chainscript.transaction import ProgrammableTransaction, Transaction
from chainscript.types import Address, Digest, Object, ObjectID

_log = logging.getLogger(__name__)


class ValidatorWithFullnode:
    mode = BACKEND_VALIDATOR

    def __init__(
        self,
        genesis: Iterable[Object],
        natives: NativeRegistry,
        *,
        max_gas: int,
        reference_gas_price: int,
    ) -> None:
        objects = list(genesis)
        self.validator = AuthorityState("validator", objects, natives, max_gas=max_gas)
        self.fullnode = AuthorityState("fullnode", objects, natives, max_gas=max_gas)
        self.reference_gas_price = reference_gas_price

    def send_and_confirm_transaction_with_execution_error(
        self, transaction: Transaction
    ) -> tuple[TransactionEffects, ExecutionFailure | None]:
        certificate = self.validator.handle_transaction(transaction)
        shared_versions = None
        if transaction.contains_shared_object():
            shared_versions = self.validator.assign_shared_versions(transaction)
            _log.debug("sequencing %s through consensus: %s", certificate.digest, shared_versions)
        outcome = self.validator.execute_certificate(certificate, shared_versions=shared_versions)
        try:
            replay = self.fullnode.execute_certificate(certificate, shared_versions=shared_versions)
        except TransactionRejected as exc:
            raise BackendError(f"fullnode rejected certified transaction {certificate.digest}: {exc}") from exc
        if replay.effects.digest() != outcome.effects.digest():
            raise BackendError(f"fullnode effects diverge from validator for {certificate.digest}")
        return outcome.effects, outcome.failure

    def execute_txn(self, transaction: Transaction) -> tuple[TransactionEffects, ExecutionFailure | None]:
        return self.send_and_confirm_transaction_with_execution_error(transaction)

    def create_checkpoint(self) -> VerifiedCheckpoint:
        raise OperationNotSupported("create_checkpoint", self.mode)

    def advance_clock(self, duration: timedelta) -> TransactionEffects:
        raise OperationNotSupported("advance_clock", self.mode)

    def consensus_commit_prologue(self, timestamp_ms: int) -> TransactionEffects:
        raise OperationNotSupported("consensus_commit_prologue", self.mode)

    def advance_epoch(self) -> None:
        raise OperationNotSupported("advance_epoch", self.mode)

    def request_gas(self, address: Address, amount: int) -> TransactionEffects:
        raise OperationNotSupported("request_gas", self.mode)

    def dev_inspect_transaction_block(
        self,
        sender: Address,
        transaction_kind: ProgrammableTransaction,
        gas_price: int | None,
    ) -> DevInspectResults:
        price = self.reference_gas_price if gas_price is None else gas_price
        return self.fullnode.dev_inspect(sender, transaction_kind, price)

    def query_tx_events_asc(self, digest: Digest, limit: int) -> list[Event]:
        return self.fullnode.query_tx_events(digest, limit)

    def get_object(self, object_id: ObjectID) -> Object | None:
        return self.fullnode.get_object(object_id)

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None:
        return self.fullnode.get_object_by_key(object_id, version)


__all__ = ["ValidatorWithFullnode"]
