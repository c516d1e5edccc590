"""
Storage Layer Tests.

============================================================
PURPOSE
============================================================
Tests for the database, accounting repository and withdrawal
ledger repository against SQLite.

============================================================
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import inspect

from storage.database import Database, create_database
from storage.repositories import (
    AccountingRepository,
    DuplicateRecordError,
    ImmutableRecordError,
    LedgerRepository,
    RecordNotFoundError,
)


DESTINATION = "0x" + "cd" * 20


@pytest.fixture
def database():
    db = create_database("sqlite://")
    yield db
    db.dispose()


# ============================================================
# DATABASE
# ============================================================

class TestDatabase:
    """Tests for Database."""

    def test_initialize_creates_tables(self):
        db = Database("sqlite://")
        db.initialize()

        assert db.verify_connection() is True
        table_names = set(inspect(db.engine).get_table_names())
        assert {"treasury_accounting", "withdrawal_ledger"} <= table_names
        db.dispose()

    def test_transaction_scope_rolls_back(self, database):
        with pytest.raises(RuntimeError):
            with database.transaction_scope() as session:
                AccountingRepository(session).apply_earnings(Decimal("10"))
                raise RuntimeError("abort")

        with database.transaction_scope() as session:
            state = AccountingRepository(session).get_or_create()
            assert Decimal(state.total_earnings_fiat) == Decimal("0")


# ============================================================
# ACCOUNTING
# ============================================================

class TestAccountingRepository:
    """Tests for AccountingRepository."""

    def test_get_or_create_starts_at_zero(self, database):
        with database.transaction_scope() as session:
            state = AccountingRepository(session).get_or_create("USD")

            assert Decimal(state.total_earnings_fiat) == Decimal("0")
            assert Decimal(state.total_withdrawn_fiat) == Decimal("0")
            assert state.currency == "USD"

    def test_withdrawal_reduces_earnings(self, database):
        with database.transaction_scope() as session:
            repo = AccountingRepository(session)
            repo.apply_earnings(Decimal("1000.00"))
            state = repo.apply_withdrawal(Decimal("250.50"))

            assert Decimal(state.total_earnings_fiat) == Decimal("749.50")
            assert Decimal(state.total_withdrawn_fiat) == Decimal("250.50")

    def test_earnings_floored_at_zero(self, database):
        with database.transaction_scope() as session:
            repo = AccountingRepository(session)
            repo.apply_earnings(Decimal("100.00"))
            state = repo.apply_withdrawal(Decimal("300.00"))

            assert Decimal(state.total_earnings_fiat) == Decimal("0")
            assert Decimal(state.total_withdrawn_fiat) == Decimal("300.00")

    def test_totals_persist_across_instances(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'treasury.db'}"

        first = create_database(url)
        with first.transaction_scope() as session:
            AccountingRepository(session).apply_earnings(Decimal("42.00"))
        first.dispose()

        second = create_database(url)
        with second.transaction_scope() as session:
            state = AccountingRepository(session).get_or_create()
            assert Decimal(state.total_earnings_fiat) == Decimal("42.00")
        second.dispose()


# ============================================================
# LEDGER
# ============================================================

class TestLedgerRepository:
    """Tests for LedgerRepository."""

    def _open(self, database) -> uuid.UUID:
        with database.transaction_scope() as session:
            entry = LedgerRepository(session).open_entry("ledger-sync", DESTINATION, Decimal("0.5"))
            return entry.entry_id

    def test_open_entry_is_pending(self, database):
        entry_id = self._open(database)

        with database.transaction_scope() as session:
            repo = LedgerRepository(session)
            entry = repo.get(entry_id)
            assert entry.status == "PENDING"
            assert entry.tx_hash is None
            assert repo.count_by_status("PENDING") == 1

    def test_close_entry_settled(self, database):
        entry_id = self._open(database)

        with database.transaction_scope() as session:
            LedgerRepository(session).close_entry(
                entry_id, "SETTLED", tx_hash="0xabc", sent_amount=Decimal("0.5")
            )

        with database.transaction_scope() as session:
            repo = LedgerRepository(session)
            entry = repo.get_by_tx_hash("0xabc")
            assert entry.entry_id == entry_id
            assert entry.status == "SETTLED"
            assert [e.entry_id for e in repo.list_by_status("SETTLED")] == [entry_id]
            assert repo.count_by_status("PENDING") == 0

    def test_closed_entry_is_immutable(self, database):
        entry_id = self._open(database)
        with database.transaction_scope() as session:
            LedgerRepository(session).close_entry(entry_id, "FAILED", error_code="NETWORK_FAILURE")

        with pytest.raises(ImmutableRecordError):
            with database.transaction_scope() as session:
                LedgerRepository(session).close_entry(entry_id, "SETTLED", tx_hash="0xdef")

    def test_invalid_closing_status(self, database):
        entry_id = self._open(database)

        with pytest.raises(ValueError):
            with database.transaction_scope() as session:
                LedgerRepository(session).close_entry(entry_id, "PENDING")

    def test_unknown_entry(self, database):
        with pytest.raises(RecordNotFoundError):
            with database.transaction_scope() as session:
                LedgerRepository(session).close_entry(uuid.uuid4(), "SETTLED")

    def test_tx_hash_recorded_once(self, database):
        first = self._open(database)
        second = self._open(database)
        with database.transaction_scope() as session:
            LedgerRepository(session).close_entry(first, "SETTLED", tx_hash="0xabc")

        with pytest.raises(DuplicateRecordError):
            with database.transaction_scope() as session:
                LedgerRepository(session).close_entry(second, "SETTLED", tx_hash="0xabc")
