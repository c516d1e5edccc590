"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The only gateway to persistent storage.

1. Session Injection: sessions are injected, not created
2. Explicit Methods: no generic 'execute'
3. Ledger entries close once, then are immutable
4. All DB errors wrapped in repository exceptions

============================================================
"""

from storage.repositories.accounting import AccountingRepository
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    DuplicateRecordError,
    ImmutableRecordError,
    IntegrityError,
    QueryError,
    RecordNotFoundError,
    RepositoryConnectionError,
    RepositoryException,
)
from storage.repositories.ledger import LedgerRepository


__all__ = [
    "AccountingRepository",
    "BaseRepository",
    "LedgerRepository",
    "DuplicateRecordError",
    "ImmutableRecordError",
    "IntegrityError",
    "QueryError",
    "RecordNotFoundError",
    "RepositoryConnectionError",
    "RepositoryException",
]
