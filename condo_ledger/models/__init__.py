"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from condo_ledger.models.base import Base
from condo_ledger.models.enums import (
    AccountType,
    AccountNature,
    EntrySide,
    TransactionStatus,
    AppropriationOutcome,
)
from condo_ledger.models.chart_account import ChartAccount
from condo_ledger.models.ledger_entry import LedgerEntry
from condo_ledger.models.ledger_transaction import LedgerTransaction

__all__ = [
    "Base",
    "AccountType",
    "AccountNature",
    "EntrySide",
    "TransactionStatus",
    "AppropriationOutcome",
    "ChartAccount",
    "LedgerEntry",
    "LedgerTransaction",
]
