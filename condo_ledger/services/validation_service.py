"""
Transaction validator.

Integrity rules checked before posting and at audit time:

1. Double entry: debits equal credits.
2. Open period: the date lies in the window
   [today - 3 months, today + 1 month].
3. Posting eligibility: only active leaf accounts receive entries.
4. Natural balance: a movement against the account's nature is
   a warning, never an error.
5. Counterparty: accounts flagged requires_third_party need a
   resolvable third party.
6. Property advisories (receivables, reserve fund, income).

The validator never raises for rule violations. It returns a
ValidationResult so batches and whole periods can be reported
partially. It only reads, so it is safe to call repeatedly
and concurrently.
"""

import logging
from datetime import date
from typing import Callable, Iterable

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, func, extract
from sqlalchemy.orm import Session, selectinload

from condo_ledger.clock import Clock, SystemClock
from condo_ledger.config import ReserveFundConfig
from condo_ledger.models.chart_account import ChartAccount
from condo_ledger.models.enums import AccountNature, TransactionStatus
from condo_ledger.models.ledger_entry import LedgerEntry
from condo_ledger.models.ledger_transaction import (
    BALANCE_TOLERANCE,
    LedgerTransaction,
)
from condo_ledger.money import to_money
from condo_ledger.schemas.validation import (
    AccountConsistencyCheck,
    BalanceCheck,
    BatchValidationResult,
    PeriodChecks,
    PeriodValidationResult,
    PeriodWindowCheck,
    TransactionValidationDetail,
    ValidationResult,
    ValidationSummary,
)
from condo_ledger.services.compliance_service import ComplianceReporter

logger = logging.getLogger(__name__)


CLOSED_PERIOD_MONTHS = 3
FUTURE_WINDOW_MONTHS = 1

RECEIVABLE_PREFIX = "1305"
OPERATING_FEE_PREFIX = "4135"

KNOWN_THIRD_PARTY_TYPES = frozenset(
    {"apartment", "provider", "supplier", "employee", "resident"}
)

ThirdPartyResolver = Callable[[str | None, int], bool]


def default_third_party_resolver(third_party_type: str | None, third_party_id: int) -> bool:
    """Accept references of a known type with a positive id."""
    return third_party_type in KNOWN_THIRD_PARTY_TYPES and third_party_id > 0


def check_period_window(transaction_date: date, today: date) -> PeriodWindowCheck:
    """
    Check that a date may still receive postings.

    Dates older than three months belong to a closed prior
    period; dates beyond one month ahead are future dates.
    Both bounds are inclusive.
    """
    earliest = today - relativedelta(months=CLOSED_PERIOD_MONTHS)
    latest = today + relativedelta(months=FUTURE_WINDOW_MONTHS)

    if transaction_date < earliest:
        return PeriodWindowCheck(
            is_valid=False,
            message=(
                f"Closed prior period: transactions dated before "
                f"{earliest:%d/%m/%Y} are not allowed "
                f"(transaction date {transaction_date:%d/%m/%Y})"
            ),
            earliest_allowed=earliest,
            latest_allowed=latest,
        )
    if transaction_date > latest:
        return PeriodWindowCheck(
            is_valid=False,
            message=(
                f"Future date: transactions dated after "
                f"{latest:%d/%m/%Y} are not allowed "
                f"(transaction date {transaction_date:%d/%m/%Y})"
            ),
            earliest_allowed=earliest,
            latest_allowed=latest,
        )
    return PeriodWindowCheck(
        is_valid=True,
        message="Period open for postings",
        earliest_allowed=earliest,
        latest_allowed=latest,
    )


class TransactionValidator:
    """
    Stateless rule engine over transactions.

    The session is only needed for validate_period_integrity;
    single transactions and batches are validated in memory.
    """

    def __init__(
        self,
        db: Session | None = None,
        third_party_resolver: ThirdPartyResolver | None = None,
        clock: Clock | None = None,
        config: ReserveFundConfig | None = None,
    ):
        self.db = db
        self.resolve_third_party = third_party_resolver or default_third_party_resolver
        self.clock = clock or SystemClock()
        self.config = config or ReserveFundConfig()

    def validate_transaction_integrity(
        self,
        transaction: LedgerTransaction,
        skip_period_validation: bool = False,
    ) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        info: list[str] = []

        # Rule 1: double entry, from the entries rather than cached totals
        total_debit, total_credit = transaction.entry_totals()
        if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
            errors.append(
                f"Transaction violates double-entry: "
                f"debits ({total_debit}) != credits ({total_credit})"
            )
        if not transaction.entries:
            errors.append("Transaction has no entries")

        # Rule 2: open period
        if not skip_period_validation:
            window = check_period_window(
                transaction.transaction_date, self.clock.today()
            )
            if not window.is_valid:
                errors.append(window.message)

        # Rules 3-5: per entry
        for entry in transaction.entries:
            account = entry.account
            if account is None:
                errors.append(
                    f"Entry references a missing account (id {entry.account_id})"
                )
                continue
            errors.extend(self._check_third_party(entry, account))
            warning = self._check_natural_direction(entry, account)
            if warning:
                warnings.append(warning)
            errors.extend(self._check_posting_eligibility(account))

        # Rule 6
        advisory_warnings, advisory_info = self._property_advisories(transaction)
        warnings.extend(advisory_warnings)
        info.extend(advisory_info)

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            info=info,
            summary=ValidationSummary(
                total_errors=len(errors),
                total_warnings=len(warnings),
                can_be_posted=not errors,
                requires_review=bool(warnings),
            ),
        )

    def _check_posting_eligibility(self, account: ChartAccount) -> list[str]:
        errors = []
        if not account.accepts_posting:
            errors.append(
                f"Account '{account.full_name}' does not accept direct "
                f"postings (summary account)"
            )
        if not account.is_active:
            errors.append(f"Account '{account.full_name}' is inactive")
        return errors

    def _check_natural_direction(
        self, entry: LedgerEntry, account: ChartAccount
    ) -> str | None:
        if account.increases_with(entry.side):
            return None
        return (
            f"Account '{account.full_name}' ({account.nature.value} nature) "
            f"has a {entry.side.value} movement of {to_money(entry.amount):,}"
        )

    def _check_third_party(
        self, entry: LedgerEntry, account: ChartAccount
    ) -> list[str]:
        if entry.third_party_id is None:
            if account.requires_third_party:
                return [
                    f"Missing required counterparty: account "
                    f"'{account.full_name}' requires a third party"
                ]
            return []
        if not self.resolve_third_party(entry.third_party_type, entry.third_party_id):
            return [
                f"Unknown counterparty {entry.third_party_type}"
                f"#{entry.third_party_id} on account '{account.full_name}'"
            ]
        return []

    def _property_advisories(
        self, transaction: LedgerTransaction
    ) -> tuple[list[str], list[str]]:
        warnings: list[str] = []
        info: list[str] = []
        entries = [e for e in transaction.entries if e.account is not None]

        receivables = [
            e for e in entries if e.account.code.startswith(RECEIVABLE_PREFIX)
        ]
        for entry in receivables:
            if entry.third_party_type != "apartment":
                warnings.append(
                    f"Receivable movement on '{entry.account.name}' has no "
                    f"apartment assigned"
                )

        fund_credit = sum(
            (to_money(e.credit_amount) for e in entries
             if e.account.code == self.config.fund_account_code),
            to_money(0),
        )
        if fund_credit > 0:
            info.append(f"Reserve fund appropriation: {fund_credit:,}")
            if not any(
                e.account.code == self.config.expense_account_code for e in entries
            ):
                warnings.append(
                    f"Reserve fund appropriation without a counterpart on "
                    f"expense account {self.config.expense_account_code}"
                )

        has_fee_income = any(
            e.account.code.startswith(OPERATING_FEE_PREFIX) for e in entries
        )
        if has_fee_income and not receivables:
            warnings.append(
                "Operating income recorded without a receivable counterpart"
            )

        if transaction.reference_type == "invoice" and transaction.description:
            lowered = transaction.description.lower()
            if "invoice" not in lowered and "factura" not in lowered:
                warnings.append(
                    "Transaction references an invoice but its description "
                    "does not say so"
                )
        if transaction.reference_type and transaction.reference_id:
            info.append(
                f"Reference: {transaction.reference_type}#{transaction.reference_id}"
            )

        return warnings, info

    def validate_transactions_batch(
        self,
        transactions: Iterable[LedgerTransaction],
        skip_period_validation: bool = False,
    ) -> BatchValidationResult:
        """Validate each transaction independently, without stopping early."""
        result = BatchValidationResult()
        for transaction in transactions:
            validation = self.validate_transaction_integrity(
                transaction, skip_period_validation=skip_period_validation
            )
            result.total_transactions += 1
            if validation.is_valid:
                result.valid_transactions += 1
            else:
                result.invalid_transactions += 1
            if validation.warnings:
                result.transactions_with_warnings += 1
            result.total_errors += len(validation.errors)
            result.total_warnings += len(validation.warnings)
            result.details.append(TransactionValidationDetail(
                transaction_id=transaction.id,
                transaction_number=transaction.transaction_number,
                validation=validation,
            ))
        return result

    def validate_period_integrity(
        self, scope_id: int, month: int, year: int
    ) -> PeriodValidationResult:
        """
        Validate every posted transaction of a period.

        Posted transactions are historical, so the open-period
        rule is not applied to them. On top of the batch result,
        the period must balance as a whole.
        """
        if self.db is None:
            raise RuntimeError("validate_period_integrity needs a database session")

        transactions = self.db.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.scope_id == scope_id,
                LedgerTransaction.status == TransactionStatus.POSTED,
                extract("month", LedgerTransaction.transaction_date) == month,
                extract("year", LedgerTransaction.transaction_date) == year,
            )
            .options(
                selectinload(LedgerTransaction.entries)
                .selectinload(LedgerEntry.account)
            )
            .order_by(LedgerTransaction.transaction_date, LedgerTransaction.id)
        ).scalars().all()

        batch = self.validate_transactions_batch(
            transactions, skip_period_validation=True
        )

        period_checks = PeriodChecks(
            balance_check=self._period_balance(scope_id, month, year),
            account_consistency_check=self._account_consistency(scope_id),
            reserve_fund_check=self._reserve_fund_compliance(scope_id, year),
        )

        logger.info(
            "period_integrity_validated",
            extra={
                "scope_id": scope_id,
                "month": month,
                "year": year,
                "invalid_transactions": batch.invalid_transactions,
                "is_balanced": period_checks.balance_check.is_balanced,
            },
        )

        return PeriodValidationResult(
            **batch.model_dump(),
            scope_id=scope_id,
            month=month,
            year=year,
            period=f"{month}/{year}",
            period_checks=period_checks,
        )

    def _period_balance(self, scope_id: int, month: int, year: int) -> BalanceCheck:
        totals = self.db.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
            )
            .join(LedgerTransaction, LedgerEntry.transaction_id == LedgerTransaction.id)
            .where(
                LedgerTransaction.scope_id == scope_id,
                LedgerTransaction.status == TransactionStatus.POSTED,
                extract("month", LedgerTransaction.transaction_date) == month,
                extract("year", LedgerTransaction.transaction_date) == year,
            )
        ).one()
        total_debits = to_money(totals[0])
        total_credits = to_money(totals[1])
        difference = abs(total_debits - total_credits)
        is_balanced = difference <= BALANCE_TOLERANCE
        return BalanceCheck(
            is_balanced=is_balanced,
            total_debits=total_debits,
            total_credits=total_credits,
            difference=difference,
            status="OK" if is_balanced else "ERROR",
        )

    def _account_consistency(self, scope_id: int) -> AccountConsistencyCheck:
        """Flag accounts whose balance runs against their nature."""
        rows = self.db.execute(
            select(
                ChartAccount,
                func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
            )
            .join(LedgerEntry, LedgerEntry.account_id == ChartAccount.id)
            .join(LedgerTransaction, LedgerEntry.transaction_id == LedgerTransaction.id)
            .where(
                ChartAccount.scope_id == scope_id,
                LedgerTransaction.status == TransactionStatus.POSTED,
            )
            .group_by(ChartAccount.id)
        ).all()

        inconsistencies = []
        for account, debits, credits in rows:
            debits, credits = to_money(debits), to_money(credits)
            if account.nature == AccountNature.DEBIT:
                balance = debits - credits
            else:
                balance = credits - debits
            if balance < 0:
                side = "credit" if account.nature == AccountNature.DEBIT else "debit"
                inconsistencies.append(
                    f"Account {account.full_name} "
                    f"({account.account_type.value}) has a {side} balance "
                    f"of {abs(balance):,}"
                )

        return AccountConsistencyCheck(
            accounts_validated=len(rows),
            inconsistencies=inconsistencies,
            inconsistencies_count=len(inconsistencies),
            status="OK" if not inconsistencies else "WARNING",
        )

    def _reserve_fund_compliance(self, scope_id: int, year: int):
        fund_account = self.db.execute(
            select(ChartAccount).where(
                ChartAccount.scope_id == scope_id,
                ChartAccount.code == self.config.fund_account_code,
            )
        ).scalar_one_or_none()
        if fund_account is None:
            return None
        return ComplianceReporter(
            self.db, scope_id, self.config
        ).validate_legal_compliance(year)
