"""
Pydantic schemas for reserve fund and compliance reporting.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from condo_ledger.models.enums import AppropriationOutcome


class MonthlyCompliance(BaseModel):
    month: int
    income: Decimal
    appropriated: Decimal


class ComplianceReport(BaseModel):
    """Yearly appropriations measured against the legal minimum."""
    scope_id: int
    year: int
    total_income: Decimal
    total_appropriated: Decimal
    minimum_percentage: Decimal
    minimum_required: Decimal
    compliance_percentage: Decimal
    is_compliant: bool
    deficit: Decimal
    months: list[MonthlyCompliance] = Field(default_factory=list)


class ScopeAppropriationResult(BaseModel):
    scope_id: int
    outcome: AppropriationOutcome
    amount: Decimal = Decimal("0.00")
    monthly_income: Decimal = Decimal("0.00")
    transaction_id: int | None = None
    transaction_number: str | None = None
    message: str = ""


class AppropriationRunSummary(BaseModel):
    """
    Result of one scheduler run.

    exit_code separates failures (missing accounts, broken
    scopes) from benign no-ops, so operators alert on the
    former only.
    """
    month: int
    year: int
    dry_run: bool = False
    force: bool = False
    results: list[ScopeAppropriationResult] = Field(default_factory=list)

    def _count(self, *outcomes: AppropriationOutcome) -> int:
        return sum(1 for r in self.results if r.outcome in outcomes)

    @property
    def created_count(self) -> int:
        return self._count(AppropriationOutcome.CREATED)

    @property
    def skipped_count(self) -> int:
        return self._count(
            AppropriationOutcome.SKIPPED_EXISTING,
            AppropriationOutcome.SKIPPED_NO_INCOME,
        )

    @property
    def failed_count(self) -> int:
        return self._count(AppropriationOutcome.FAILED)

    @property
    def success_count(self) -> int:
        return len(self.results) - self.failed_count

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_count else 0
