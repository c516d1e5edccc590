"""
Storage Package.

Persistence for treasury accounting and the withdrawal ledger.

Modules:
- database: Engine, sessions, transaction scope
- models/: ORM models
- repositories/: Data access layer
"""

from storage.database import (
    Database,
    DatabaseConnectionError,
    DatabaseInitializationError,
    DatabasePersistenceError,
    create_database,
)


__all__ = [
    "Database",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "DatabasePersistenceError",
    "create_database",
]
