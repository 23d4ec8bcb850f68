"""
Reserve fund engine.

The horizontal property law (Ley 675 de 2001) requires every
conjunto to set aside a share of its operating income, 30% by
default, into a reserve fund. Each month the engine books:

    DEBIT   530502  Apropiacion fondo de reserva   (expense)
    CREDIT  320501  Fondo de reserva Ley 675       (equity)

for percentage x operating income of the month. Operating
income is the credit side of posted entries on income accounts
under the configured prefixes ("41" by default).

An appropriation is made at most once per scope and period.
The existence check is backed by the unique appropriation key
on ledger_transactions: a concurrent writer that loses the race
gets an IntegrityError, rolls back its SAVEPOINT, finds the
winner's appropriation and reports a no-op.
"""

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, extract
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from condo_ledger.clock import Clock, SystemClock
from condo_ledger.config import ReserveFundConfig
from condo_ledger.events import EventDispatcher, ReserveAppropriationCreated
from condo_ledger.exceptions import InvalidPeriodError
from condo_ledger.models.enums import TransactionStatus
from condo_ledger.models.ledger_transaction import LedgerTransaction
from condo_ledger.money import ZERO, to_money
from condo_ledger.schemas.ledger import EntryCreate, TransactionCreate
from condo_ledger.schemas.reserve_fund import ComplianceReport
from condo_ledger.services.chart_service import ChartOfAccountsService
from condo_ledger.services.compliance_service import (
    ComplianceReporter,
    monthly_credit_totals,
    operating_income_filter,
)
from condo_ledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

APPROPRIATION_REFERENCE_TYPE = "reserve_fund_appropriation"

MISSING_ACCOUNT_HINT = (
    "It must exist in the chart of accounts to comply with Ley 675"
)


def appropriation_key(month: int, year: int) -> str:
    return f"reserve:{year:04d}-{month:02d}"


def period_end(month: int, year: int) -> date:
    """Last calendar day of the period."""
    return date(year, month, 1) + relativedelta(months=1, days=-1)


class ReserveFundService:

    def __init__(
        self,
        db: Session,
        scope_id: int,
        config: ReserveFundConfig | None = None,
        ledger_service: LedgerService | None = None,
        dispatcher: EventDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self.db = db
        self.scope_id = scope_id
        self.config = config or ReserveFundConfig()
        self.clock = clock or SystemClock()
        self.dispatcher = dispatcher or EventDispatcher()
        self.ledger = ledger_service or LedgerService(
            db, dispatcher=self.dispatcher, clock=self.clock
        )
        self.chart = ChartOfAccountsService(db)

    # --- Calculation ---

    def get_operational_income(self, month: int, year: int) -> Decimal:
        totals = monthly_credit_totals(
            self.db,
            self.scope_id,
            year,
            operating_income_filter(self.config),
            month=month,
        )
        return totals.get(month, ZERO)

    def calculate_monthly_reserve(self, month: int, year: int) -> Decimal:
        """Reserve owed for the period, rounded half-up to cents."""
        income = self.get_operational_income(month, year)
        if income <= 0:
            return ZERO
        return to_money(income * self.config.percentage / Decimal("100"))

    # --- Appropriation ---

    def find_existing_appropriation(
        self, month: int, year: int
    ) -> LedgerTransaction | None:
        return self.db.execute(
            select(LedgerTransaction)
            .where(
                LedgerTransaction.scope_id == self.scope_id,
                LedgerTransaction.reference_type == APPROPRIATION_REFERENCE_TYPE,
                LedgerTransaction.status == TransactionStatus.POSTED,
                extract("month", LedgerTransaction.transaction_date) == month,
                extract("year", LedgerTransaction.transaction_date) == year,
            )
            .order_by(LedgerTransaction.id)
            .limit(1)
        ).scalar_one_or_none()

    def execute_monthly_appropriation(
        self,
        month: int,
        year: int,
        force: bool = False,
        actor_id: int | None = None,
    ) -> LedgerTransaction | None:
        """
        Book the reserve appropriation of a period.

        Returns None when the period already has an appropriation
        (unless force), when there is no operating income, or when
        a concurrent writer got there first. Raises
        AccountNotFoundError naming the missing code when the
        chart lacks the reserve accounts, and re-raises any other
        IntegrityError (a transaction number taken meanwhile).

        A forced run books an additional appropriation next to
        any existing one.
        """
        if not 1 <= month <= 12:
            raise InvalidPeriodError(month, year)

        if not force and self.find_existing_appropriation(month, year):
            logger.info(
                "reserve_appropriation_exists",
                extra={"scope_id": self.scope_id, "month": month, "year": year},
            )
            return None

        income = self.get_operational_income(month, year)
        amount = self.calculate_monthly_reserve(month, year)
        if amount <= 0:
            logger.info(
                "reserve_appropriation_no_income",
                extra={"scope_id": self.scope_id, "month": month, "year": year},
            )
            return None

        expense_account = self.chart.require_posting_account(
            self.scope_id, self.config.expense_account_code, MISSING_ACCOUNT_HINT
        )
        fund_account = self.chart.require_posting_account(
            self.scope_id, self.config.fund_account_code, MISSING_ACCOUNT_HINT
        )

        system_actor = self.config.system_actor_id
        request = TransactionCreate(
            transaction_date=period_end(month, year),
            description=f"Monthly reserve fund appropriation - {month}/{year}",
            reference_type=APPROPRIATION_REFERENCE_TYPE,
            created_by=actor_id if actor_id is not None else system_actor,
            entries=[
                EntryCreate(
                    account_id=expense_account.id,
                    description=(
                        f"Reserve fund appropriation {month}/{year} "
                        f"({self.config.percentage}% operating income)"
                    ),
                    debit_amount=amount,
                ),
                EntryCreate(
                    account_id=fund_account.id,
                    description=f"Reserve fund increase {month}/{year}",
                    credit_amount=amount,
                ),
            ],
        )

        try:
            transaction, _ = self.ledger.create_and_post(
                self.scope_id,
                request,
                system_actor,
                appropriation_key=None if force else appropriation_key(month, year),
                approve=True,
            )
        except IntegrityError:
            # The savepoint is already rolled back; the outer
            # transaction stays usable. Only an appropriation already
            # booked for the period makes this a no-op.
            if force or self.find_existing_appropriation(month, year) is None:
                logger.error(
                    "reserve_appropriation_insert_failed",
                    extra={
                        "scope_id": self.scope_id,
                        "month": month,
                        "year": year,
                    },
                )
                raise
            logger.warning(
                "reserve_appropriation_conflict",
                extra={"scope_id": self.scope_id, "month": month, "year": year},
            )
            return None

        logger.info(
            "reserve_appropriation_created",
            extra={
                "scope_id": self.scope_id,
                "month": month,
                "year": year,
                "amount": str(amount),
                "monthly_income": str(income),
                "transaction_number": transaction.transaction_number,
                "forced": force,
            },
        )
        self.dispatcher.enqueue(ReserveAppropriationCreated(
            transaction_id=transaction.id,
            scope_id=self.scope_id,
            month=month,
            year=year,
            appropriated_amount=amount,
            monthly_income=income,
        ))
        return transaction

    # --- Queries ---

    def get_reserve_fund_balance(self, as_of: date | None = None) -> Decimal:
        """Credits minus debits on the fund account, up to `as_of`."""
        fund_account = self.chart.get_account_by_code(
            self.scope_id, self.config.fund_account_code
        )
        if fund_account is None:
            return ZERO
        return self.ledger.get_account_balance(fund_account.id, end=as_of)

    def get_appropriation_history(
        self, year: int | None = None
    ) -> list[LedgerTransaction]:
        """Posted appropriations, most recent first."""
        query = (
            select(LedgerTransaction)
            .options(selectinload(LedgerTransaction.entries))
            .where(
                LedgerTransaction.scope_id == self.scope_id,
                LedgerTransaction.reference_type == APPROPRIATION_REFERENCE_TYPE,
                LedgerTransaction.status == TransactionStatus.POSTED,
            )
            .order_by(
                LedgerTransaction.transaction_date.desc(),
                LedgerTransaction.id.desc(),
            )
        )
        if year is not None:
            query = query.where(
                extract("year", LedgerTransaction.transaction_date) == year
            )
        return list(self.db.execute(query).scalars().all())

    def validate_legal_compliance(self, year: int) -> ComplianceReport:
        return ComplianceReporter(
            self.db, self.scope_id, self.config
        ).validate_legal_compliance(year)
