"""
Accounting Repository.

Single-row treasury accounting totals. Callers run each
update inside one transaction so the read-modify-write is
atomic.
"""

from decimal import Decimal

from sqlalchemy.orm import Session

from storage.models.treasury import ACCOUNTING_ROW_ID, AccountingState
from storage.repositories.base import BaseRepository


ZERO = Decimal("0")


class AccountingRepository(BaseRepository[AccountingState]):
    """Reads and updates the treasury_accounting row."""

    def __init__(self, session: Session):
        super().__init__(session, AccountingState, "AccountingRepository")

    def get_or_create(self, currency: str = "USD", for_update: bool = False) -> AccountingState:
        """Load the accounting row, creating it with zero totals if missing."""
        state = self._get(ACCOUNTING_ROW_ID, for_update=for_update)
        if state is None:
            state = self._add(AccountingState(
                id=ACCOUNTING_ROW_ID,
                total_earnings_fiat=ZERO,
                total_withdrawn_fiat=ZERO,
                currency=currency,
            ))
            self._logger.info("Initialized treasury accounting row")
        return state

    def apply_withdrawal(self, value: Decimal) -> AccountingState:
        """
        Record a successful withdrawal.

        Withdrawn grows by `value`; earnings shrink by `value`
        and are floored at zero.
        """
        state = self.get_or_create(for_update=True)
        state.total_withdrawn_fiat = Decimal(state.total_withdrawn_fiat) + value
        state.total_earnings_fiat = max(ZERO, Decimal(state.total_earnings_fiat) - value)
        self._flush("apply_withdrawal")
        return state

    def apply_earnings(self, value: Decimal) -> AccountingState:
        """Record new earnings."""
        state = self.get_or_create(for_update=True)
        state.total_earnings_fiat = Decimal(state.total_earnings_fiat) + value
        self._flush("apply_earnings")
        return state
