"""
Pydantic schemas for validation results.

The validator never raises for rule violations; it returns
these structures so batches and periods can be reported
partially.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from condo_ledger.schemas.reserve_fund import ComplianceReport


class PeriodWindowCheck(BaseModel):
    is_valid: bool
    message: str
    earliest_allowed: date
    latest_allowed: date


class ValidationSummary(BaseModel):
    total_errors: int
    total_warnings: int
    can_be_posted: bool
    requires_review: bool


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    info: list[str] = Field(default_factory=list)
    summary: ValidationSummary


class TransactionValidationDetail(BaseModel):
    transaction_id: int | None
    transaction_number: str
    validation: ValidationResult


class BatchValidationResult(BaseModel):
    total_transactions: int = 0
    valid_transactions: int = 0
    invalid_transactions: int = 0
    transactions_with_warnings: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    details: list[TransactionValidationDetail] = Field(default_factory=list)


class BalanceCheck(BaseModel):
    is_balanced: bool
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    status: str


class AccountConsistencyCheck(BaseModel):
    accounts_validated: int
    inconsistencies: list[str] = Field(default_factory=list)
    inconsistencies_count: int = 0
    status: str


class PeriodChecks(BaseModel):
    balance_check: BalanceCheck
    account_consistency_check: AccountConsistencyCheck
    reserve_fund_check: ComplianceReport | None = None


class PeriodValidationResult(BatchValidationResult):
    scope_id: int
    month: int
    year: int
    period: str
    period_checks: PeriodChecks
