"""The capability surface every execution backend exposes."""
from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable

from chainscript.effects import DevInspectResults, Event, TransactionEffects
from chainscript.errors import ExecutionFailure
from chainscript.ledger.checkpoint import VerifiedCheckpoint
from chainscript.transaction import ProgrammableTransaction, Transaction
from chainscript.types import Address, Digest, Object, ObjectID


@runtime_checkable
class TransactionalAdapter(Protocol):
    """Backends answer every capability; unsupported ones raise ``OperationNotSupported``."""

    def execute_txn(self, transaction: Transaction) -> tuple[TransactionEffects, ExecutionFailure | None]: ...

    def create_checkpoint(self) -> VerifiedCheckpoint: ...

    def advance_clock(self, duration: timedelta) -> TransactionEffects: ...

    def consensus_commit_prologue(self, timestamp_ms: int) -> TransactionEffects: ...

    def advance_epoch(self) -> None: ...

    def request_gas(self, address: Address, amount: int) -> TransactionEffects: ...

    def dev_inspect_transaction_block(
        self,
        sender: Address,
        transaction_kind: ProgrammableTransaction,
        gas_price: int | None,
    ) -> DevInspectResults: ...

    def query_tx_events_asc(self, digest: Digest, limit: int) -> list[Event]: ...

    def get_object(self, object_id: ObjectID) -> Object | None: ...

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None: ...


__all__ = ["TransactionalAdapter"]
