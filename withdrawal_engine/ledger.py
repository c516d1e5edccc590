"""
Withdrawal Engine - Withdrawal Ledger.

Durable record for the ledger-sync strategy: an entry is
opened PENDING before the transfer and closed SETTLED or
FAILED afterwards.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from storage.database import Database
from storage.repositories.ledger import LedgerRepository

from .types import LedgerStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerRecord:
    """A ledger entry as seen by the engine."""

    entry_id: uuid.UUID
    strategy_id: str
    destination: str
    requested_amount: Decimal
    status: LedgerStatus = LedgerStatus.PENDING
    tx_hash: Optional[str] = None
    sent_amount: Optional[Decimal] = None
    error_code: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None


class WithdrawalLedger(ABC):
    """Where ledger-synced withdrawals are recorded."""

    @abstractmethod
    def open_entry(self, strategy_id: str, destination: str, amount: Decimal) -> LedgerRecord:
        pass

    @abstractmethod
    def close_entry(
        self,
        entry_id: uuid.UUID,
        status: LedgerStatus,
        tx_hash: Optional[str] = None,
        sent_amount: Optional[Decimal] = None,
        error_code: Optional[str] = None,
        error: Optional[str] = None,
    ) -> LedgerRecord:
        pass

    @abstractmethod
    def get(self, entry_id: uuid.UUID) -> Optional[LedgerRecord]:
        pass


class InMemoryWithdrawalLedger(WithdrawalLedger):
    """Ledger kept in a dict."""

    def __init__(self):
        self._entries: Dict[uuid.UUID, LedgerRecord] = {}

    @property
    def entries(self) -> Dict[uuid.UUID, LedgerRecord]:
        return dict(self._entries)

    def open_entry(self, strategy_id: str, destination: str, amount: Decimal) -> LedgerRecord:
        record = LedgerRecord(
            entry_id=uuid.uuid4(),
            strategy_id=strategy_id,
            destination=destination,
            requested_amount=amount,
            created_at=datetime.utcnow(),
        )
        self._entries[record.entry_id] = record
        return record

    def close_entry(
        self,
        entry_id: uuid.UUID,
        status: LedgerStatus,
        tx_hash: Optional[str] = None,
        sent_amount: Optional[Decimal] = None,
        error_code: Optional[str] = None,
        error: Optional[str] = None,
    ) -> LedgerRecord:
        record = self._entries.get(entry_id)
        if record is None:
            raise KeyError(f"Unknown ledger entry {entry_id}")
        if record.status != LedgerStatus.PENDING:
            raise ValueError(f"Ledger entry {entry_id} is already {record.status.value}")
        record = replace(
            record,
            status=status,
            tx_hash=tx_hash,
            sent_amount=sent_amount,
            error_code=error_code,
            error=error,
        )
        self._entries[entry_id] = record
        return record

    def get(self, entry_id: uuid.UUID) -> Optional[LedgerRecord]:
        return self._entries.get(entry_id)


class SqlWithdrawalLedger(WithdrawalLedger):
    """Ledger in the withdrawal_ledger table."""

    def __init__(self, database: Database):
        self._database = database

    def open_entry(self, strategy_id: str, destination: str, amount: Decimal) -> LedgerRecord:
        with self._database.transaction_scope() as session:
            entry = LedgerRepository(session).open_entry(strategy_id, destination, amount)
            return self._to_record(entry)

    def close_entry(
        self,
        entry_id: uuid.UUID,
        status: LedgerStatus,
        tx_hash: Optional[str] = None,
        sent_amount: Optional[Decimal] = None,
        error_code: Optional[str] = None,
        error: Optional[str] = None,
    ) -> LedgerRecord:
        with self._database.transaction_scope() as session:
            entry = LedgerRepository(session).close_entry(
                entry_id,
                status.value,
                tx_hash=tx_hash,
                sent_amount=sent_amount,
                error_code=error_code,
                error=error,
            )
            return self._to_record(entry)

    def get(self, entry_id: uuid.UUID) -> Optional[LedgerRecord]:
        with self._database.transaction_scope() as session:
            entry = LedgerRepository(session).get(entry_id)
            return self._to_record(entry) if entry else None

    @staticmethod
    def _to_record(entry) -> LedgerRecord:
        return LedgerRecord(
            entry_id=entry.entry_id,
            strategy_id=entry.strategy_id,
            destination=entry.destination,
            requested_amount=Decimal(entry.requested_amount),
            status=LedgerStatus(entry.status),
            tx_hash=entry.tx_hash,
            sent_amount=Decimal(entry.sent_amount) if entry.sent_amount is not None else None,
            error_code=entry.error_code,
            error=entry.error,
            created_at=entry.created_at,
        )
