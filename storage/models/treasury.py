"""
Treasury Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for treasury accounting and the withdrawal ledger.

============================================================
DATA LIFECYCLE ROLE
============================================================
- AccountingState: single mutable row, updated atomically
- WithdrawalLedgerEntry: one row per ledger-synced
  withdrawal, PENDING -> SETTLED | FAILED

============================================================
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin


ACCOUNTING_ROW_ID = 1


class AccountingState(Base, TimestampMixin):
    """
    Treasury accounting totals.

    Exactly one row (id = ACCOUNTING_ROW_ID).
    """

    __tablename__ = "treasury_accounting"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        default=ACCOUNTING_ROW_ID,
    )

    total_earnings_fiat: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Unwithdrawn earnings, never negative"
    )

    total_withdrawn_fiat: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Cumulative value of successful withdrawals"
    )

    currency: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        default="USD",
    )

    def __repr__(self) -> str:
        return (
            f"<AccountingState earnings={self.total_earnings_fiat} "
            f"withdrawn={self.total_withdrawn_fiat} {self.currency}>"
        )


class WithdrawalLedgerEntry(Base, TimestampMixin):
    """
    Durable record of a ledger-synced withdrawal.

    Written PENDING before the transfer is attempted, then
    moved to SETTLED or FAILED exactly once.
    """

    __tablename__ = "withdrawal_ledger"

    entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Ledger entry identifier"
    )

    strategy_id: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
    )

    destination: Mapped[str] = mapped_column(
        String(42),
        nullable=False,
        comment="Recipient address"
    )

    requested_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 18),
        nullable=False,
        comment="Requested ETH (0 = maximum safe amount)"
    )

    sent_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(38, 18),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="PENDING",
        comment="PENDING, SETTLED, FAILED"
    )

    tx_hash: Mapped[Optional[str]] = mapped_column(
        String(66),
        nullable=True,
        unique=True,
    )

    error_code: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
    )

    error: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    __table_args__ = (
        Index("ix_withdrawal_ledger_status", "status"),
        Index("ix_withdrawal_ledger_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<WithdrawalLedgerEntry {self.entry_id} {self.strategy_id} {self.status}>"
