"""
Treasury ORM Base.

============================================================
PURPOSE
============================================================
Declarative base shared by the accounting row and the
withdrawal ledger, plus the audit timestamps both carry.

============================================================
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base for `treasury_accounting` and `withdrawal_ledger`."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Audit columns for treasury records.

    `updated_at` moves when a ledger entry is settled or failed,
    or when the accounting totals change.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="When the row was first written (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last settlement or totals change (UTC)",
    )
