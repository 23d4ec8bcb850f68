"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class AccountNature(str, enum.Enum):
    """Side on which an account naturally increases."""
    DEBIT = "debit"
    CREDIT = "credit"


class EntrySide(str, enum.Enum):
    """Direction of a ledger entry."""
    DEBIT = "debit"
    CREDIT = "credit"


class TransactionStatus(str, enum.Enum):
    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"


class AppropriationOutcome(str, enum.Enum):
    """Result of one scope in a scheduled appropriation run."""
    CREATED = "created"
    SKIPPED_EXISTING = "skipped_existing"
    SKIPPED_NO_INCOME = "skipped_no_income"
    DRY_RUN = "dry_run"
    FAILED = "failed"
