"""
Withdrawal Engine - Accounting.

============================================================
PURPOSE
============================================================
Treasury earnings / withdrawn totals in fiat.

RULES:
- Successful withdrawal of value V:
    total_withdrawn += V
    total_earnings = max(0, total_earnings - V)
- Failed withdrawals change nothing
- Credits increase total_earnings

STORES:
- InMemoryAccountingStore: lost on restart
- SqlAccountingStore: treasury_accounting row, survives
  restarts, each update in one transaction

============================================================
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from storage.database import Database
from storage.repositories.accounting import AccountingRepository

from .pricing import CENT


logger = logging.getLogger(__name__)


ZERO = Decimal("0")


@dataclass(frozen=True)
class AccountingSnapshot:
    """Point-in-time accounting totals."""

    total_earnings: Decimal = ZERO
    total_withdrawn: Decimal = ZERO
    currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalEarningsUSD": f"{self.total_earnings:.2f}",
            "totalWithdrawnUSD": f"{self.total_withdrawn:.2f}",
        }


class AccountingStore(ABC):
    """Holds the treasury accounting state."""

    @abstractmethod
    def snapshot(self) -> AccountingSnapshot:
        pass

    @abstractmethod
    def record_withdrawal(self, value: Decimal) -> AccountingSnapshot:
        """Apply a successful withdrawal of fiat `value`."""
        pass

    @abstractmethod
    def record_earnings(self, value: Decimal) -> AccountingSnapshot:
        """Apply new earnings of fiat `value`."""
        pass

    @staticmethod
    def _check_value(value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError(f"Accounting value cannot be negative: {value}")
        return value.quantize(CENT)


class InMemoryAccountingStore(AccountingStore):
    """Process-local accounting."""

    def __init__(
        self,
        total_earnings: Decimal = ZERO,
        total_withdrawn: Decimal = ZERO,
        currency: str = "USD",
    ):
        self._lock = threading.Lock()
        self._state = AccountingSnapshot(total_earnings, total_withdrawn, currency)

    def snapshot(self) -> AccountingSnapshot:
        return self._state

    def record_withdrawal(self, value: Decimal) -> AccountingSnapshot:
        value = self._check_value(value)
        with self._lock:
            state = self._state
            self._state = AccountingSnapshot(
                total_earnings=max(ZERO, state.total_earnings - value),
                total_withdrawn=state.total_withdrawn + value,
                currency=state.currency,
            )
            return self._state

    def record_earnings(self, value: Decimal) -> AccountingSnapshot:
        value = self._check_value(value)
        with self._lock:
            state = self._state
            self._state = AccountingSnapshot(
                total_earnings=state.total_earnings + value,
                total_withdrawn=state.total_withdrawn,
                currency=state.currency,
            )
            return self._state


class SqlAccountingStore(AccountingStore):
    """
    Accounting persisted through SQLAlchemy.

    The lock serializes updates within the process; the
    transaction makes each update atomic in the database.
    """

    def __init__(self, database: Database, currency: str = "USD"):
        self._database = database
        self._currency = currency
        self._lock = threading.Lock()

    def snapshot(self) -> AccountingSnapshot:
        with self._database.transaction_scope() as session:
            return self._to_snapshot(AccountingRepository(session).get_or_create(self._currency))

    def record_withdrawal(self, value: Decimal) -> AccountingSnapshot:
        value = self._check_value(value)
        with self._lock, self._database.transaction_scope() as session:
            state = AccountingRepository(session).apply_withdrawal(value)
            return self._to_snapshot(state)

    def record_earnings(self, value: Decimal) -> AccountingSnapshot:
        value = self._check_value(value)
        with self._lock, self._database.transaction_scope() as session:
            state = AccountingRepository(session).apply_earnings(value)
            return self._to_snapshot(state)

    @staticmethod
    def _to_snapshot(state) -> AccountingSnapshot:
        return AccountingSnapshot(
            total_earnings=Decimal(state.total_earnings_fiat).quantize(CENT),
            total_withdrawn=Decimal(state.total_withdrawn_fiat).quantize(CENT),
            currency=state.currency,
        )
