"""
Withdrawal Ledger Repository.

============================================================
PURPOSE
============================================================
Append-and-close access to the withdrawal_ledger table.

- open_entry(): PENDING row before the transfer
- close_entry(): SETTLED / FAILED exactly once
- Lookups by id, tx hash and status

============================================================
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storage.models.treasury import WithdrawalLedgerEntry
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import ImmutableRecordError, RecordNotFoundError


PENDING = "PENDING"
CLOSED_STATUSES = ("SETTLED", "FAILED")


class LedgerRepository(BaseRepository[WithdrawalLedgerEntry]):
    """Repository for withdrawal ledger entries."""

    def __init__(self, session: Session):
        super().__init__(session, WithdrawalLedgerEntry, "LedgerRepository")

    def open_entry(
        self,
        strategy_id: str,
        destination: str,
        requested_amount: Decimal,
    ) -> WithdrawalLedgerEntry:
        """Create a PENDING entry."""
        entry = self._add(WithdrawalLedgerEntry(
            entry_id=uuid.uuid4(),
            strategy_id=strategy_id,
            destination=destination,
            requested_amount=requested_amount,
            status=PENDING,
        ))
        self._logger.info(f"Ledger entry {entry.entry_id} opened for {strategy_id}")
        return entry

    def close_entry(
        self,
        entry_id: uuid.UUID,
        status: str,
        tx_hash: Optional[str] = None,
        sent_amount: Optional[Decimal] = None,
        error_code: Optional[str] = None,
        error: Optional[str] = None,
    ) -> WithdrawalLedgerEntry:
        """
        Move a PENDING entry to SETTLED or FAILED.

        Raises:
            ValueError: Unknown target status
            RecordNotFoundError: No such entry
            ImmutableRecordError: Entry already closed
            DuplicateRecordError: tx_hash already recorded
        """
        if status not in CLOSED_STATUSES:
            raise ValueError(f"Invalid closing status: {status}")

        entry = self._get(entry_id, for_update=True)
        if entry is None:
            raise RecordNotFoundError(self._repository_name, entry_id, "entry_id")
        if entry.status != PENDING:
            raise ImmutableRecordError(self._repository_name, entry_id, "close")

        entry.status = status
        entry.tx_hash = tx_hash
        entry.sent_amount = sent_amount
        entry.error_code = error_code
        entry.error = error
        self._flush("close_entry")

        self._logger.info(f"Ledger entry {entry_id} -> {status} (tx {tx_hash})")
        return entry

    def get(self, entry_id: uuid.UUID) -> Optional[WithdrawalLedgerEntry]:
        return self._get(entry_id)

    def get_by_tx_hash(self, tx_hash: str) -> Optional[WithdrawalLedgerEntry]:
        stmt = select(WithdrawalLedgerEntry).where(WithdrawalLedgerEntry.tx_hash == tx_hash)
        return self._execute_scalar(stmt)

    def list_by_status(self, status: str, limit: int = 100) -> List[WithdrawalLedgerEntry]:
        stmt = (
            select(WithdrawalLedgerEntry)
            .where(WithdrawalLedgerEntry.status == status)
            .order_by(WithdrawalLedgerEntry.created_at.desc())
            .limit(limit)
        )
        return self._execute_query(stmt)

    def count_by_status(self, status: str) -> int:
        return self._count(WithdrawalLedgerEntry.status == status)
