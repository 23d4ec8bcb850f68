"""
Reserve fund compliance reporting.

Measures a year's reserve appropriations against the legal
minimum (30% of operating income by default). Read-only.
"""

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select, func, extract, or_
from sqlalchemy.orm import Session

from condo_ledger.config import ReserveFundConfig
from condo_ledger.models.chart_account import ChartAccount
from condo_ledger.models.enums import AccountType, TransactionStatus
from condo_ledger.models.ledger_entry import LedgerEntry
from condo_ledger.models.ledger_transaction import LedgerTransaction
from condo_ledger.money import ZERO, to_money
from condo_ledger.schemas.reserve_fund import ComplianceReport, MonthlyCompliance


def monthly_credit_totals(
    db: Session,
    scope_id: int,
    year: int,
    account_filter,
    month: int | None = None,
) -> dict[int, Decimal]:
    """
    Credit-side postings per month of `year`.

    Only posted transactions of the scope count. `account_filter`
    is a SQL condition on ChartAccount.
    """
    month_col = extract("month", LedgerTransaction.transaction_date)
    query = (
        select(month_col, func.coalesce(func.sum(LedgerEntry.credit_amount), 0))
        .join(LedgerTransaction, LedgerEntry.transaction_id == LedgerTransaction.id)
        .join(ChartAccount, LedgerEntry.account_id == ChartAccount.id)
        .where(
            LedgerTransaction.scope_id == scope_id,
            LedgerTransaction.status == TransactionStatus.POSTED,
            extract("year", LedgerTransaction.transaction_date) == year,
            account_filter,
        )
        .group_by(month_col)
    )
    if month is not None:
        query = query.where(month_col == month)
    return {
        int(row_month): to_money(total)
        for row_month, total in db.execute(query).all()
    }


def operating_income_filter(config: ReserveFundConfig):
    return (ChartAccount.account_type == AccountType.INCOME) & or_(
        *[ChartAccount.code.startswith(p) for p in config.income_account_prefixes]
    )


class ComplianceReporter:

    def __init__(
        self,
        db: Session,
        scope_id: int,
        config: ReserveFundConfig | None = None,
    ):
        self.db = db
        self.scope_id = scope_id
        self.config = config or ReserveFundConfig()

    def income_by_month(self, year: int) -> dict[int, Decimal]:
        return monthly_credit_totals(
            self.db, self.scope_id, year, operating_income_filter(self.config)
        )

    def appropriated_by_month(self, year: int) -> dict[int, Decimal]:
        return monthly_credit_totals(
            self.db,
            self.scope_id,
            year,
            ChartAccount.code == self.config.fund_account_code,
        )

    def validate_legal_compliance(self, year: int) -> ComplianceReport:
        """
        Compare the year's appropriations with the legal minimum.

        compliant when total_appropriated >= total_income * minimum%.
        """
        income = self.income_by_month(year)
        appropriated = self.appropriated_by_month(year)

        total_income = sum(income.values(), ZERO)
        total_appropriated = sum(appropriated.values(), ZERO)
        minimum_required = to_money(
            total_income * self.config.minimum_percentage / Decimal("100")
        )
        if total_income > 0:
            compliance_percentage = (
                total_appropriated / total_income * Decimal("100")
            ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        else:
            compliance_percentage = Decimal("0.00")

        return ComplianceReport(
            scope_id=self.scope_id,
            year=year,
            total_income=total_income,
            total_appropriated=total_appropriated,
            minimum_percentage=self.config.minimum_percentage,
            minimum_required=minimum_required,
            compliance_percentage=compliance_percentage,
            is_compliant=total_appropriated >= minimum_required,
            deficit=max(ZERO, minimum_required - total_appropriated),
            months=[
                MonthlyCompliance(
                    month=m,
                    income=income.get(m, ZERO),
                    appropriated=appropriated.get(m, ZERO),
                )
                for m in range(1, 13)
            ],
        )
