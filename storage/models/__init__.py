"""
Storage Models Package.

ORM models for the treasury database.

- AccountingState (treasury_accounting)
- WithdrawalLedgerEntry (withdrawal_ledger)
"""

from storage.models.base import Base, TimestampMixin
from storage.models.treasury import (
    ACCOUNTING_ROW_ID,
    AccountingState,
    WithdrawalLedgerEntry,
)


__all__ = [
    "Base",
    "TimestampMixin",
    "ACCOUNTING_ROW_ID",
    "AccountingState",
    "WithdrawalLedgerEntry",
]
