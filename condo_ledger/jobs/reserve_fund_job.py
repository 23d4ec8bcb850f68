"""
Monthly reserve fund appropriation job.

Meant to run from cron early each month for the previous one:

    0 6 5 * *  condo-ledger reserve-fund appropriate

Every scope is processed independently. A failure in one scope
is rolled back, logged and counted; the other scopes still run.
"""

import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from condo_ledger.clock import Clock, SystemClock
from condo_ledger.config import ReserveFundConfig, get_settings
from condo_ledger.events import EventDispatcher
from condo_ledger.exceptions import InvalidPeriodError, ScopeNotFoundError
from condo_ledger.models.enums import AppropriationOutcome
from condo_ledger.schemas.reserve_fund import (
    AppropriationRunSummary,
    ScopeAppropriationResult,
)
from condo_ledger.services.chart_service import ChartOfAccountsService
from condo_ledger.services.reserve_fund_service import ReserveFundService

logger = logging.getLogger(__name__)


def resolve_period(
    month: int | None, year: int | None, clock: Clock
) -> tuple[int, int]:
    """
    Period to process.

    Without a month the previous calendar month is used. With a
    month but no year, the current year.
    """
    today = clock.today()
    if month is None:
        previous = today - relativedelta(months=1)
        month = previous.month
        year = year if year is not None else previous.year
    elif year is None:
        year = today.year

    if not 1 <= month <= 12:
        raise InvalidPeriodError(month, year)
    return month, year


def _process_scope(
    service: ReserveFundService,
    month: int,
    year: int,
    force: bool,
    dry_run: bool,
) -> ScopeAppropriationResult:
    scope_id = service.scope_id

    if not force and service.find_existing_appropriation(month, year):
        return ScopeAppropriationResult(
            scope_id=scope_id,
            outcome=AppropriationOutcome.SKIPPED_EXISTING,
            message="An appropriation already exists for this period",
        )

    income = service.get_operational_income(month, year)
    amount = service.calculate_monthly_reserve(month, year)

    if dry_run:
        return ScopeAppropriationResult(
            scope_id=scope_id,
            outcome=AppropriationOutcome.DRY_RUN,
            amount=amount,
            monthly_income=income,
            message=f"DRY-RUN: would appropriate {amount:,.2f}",
        )

    if amount <= 0:
        return ScopeAppropriationResult(
            scope_id=scope_id,
            outcome=AppropriationOutcome.SKIPPED_NO_INCOME,
            monthly_income=income,
            message="No operating income to appropriate",
        )

    transaction = service.execute_monthly_appropriation(month, year, force=force)
    if transaction is None:
        # Lost the race against a concurrent run
        return ScopeAppropriationResult(
            scope_id=scope_id,
            outcome=AppropriationOutcome.SKIPPED_EXISTING,
            monthly_income=income,
            message="An appropriation already exists for this period",
        )

    return ScopeAppropriationResult(
        scope_id=scope_id,
        outcome=AppropriationOutcome.CREATED,
        amount=transaction.total_amount,
        monthly_income=income,
        transaction_id=transaction.id,
        transaction_number=transaction.transaction_number,
        message="Appropriation posted",
    )


def run_monthly_appropriation(
    db: Session,
    scope_id: int | None = None,
    month: int | None = None,
    year: int | None = None,
    force: bool = False,
    dry_run: bool = False,
    config: ReserveFundConfig | None = None,
    clock: Clock | None = None,
    dispatcher: EventDispatcher | None = None,
) -> AppropriationRunSummary:
    """
    Appropriate the reserve fund for one period across scopes.

    Raises InvalidPeriodError or ScopeNotFoundError before any
    scope is touched. Otherwise never raises: each scope's
    outcome is reported in the summary, and each scope is
    committed or rolled back on its own. Events of a scope reach
    the dispatcher's listeners only after its commit succeeds.
    """
    clock = clock or SystemClock()
    config = config or get_settings().reserve_fund_config()
    dispatcher = dispatcher or EventDispatcher()

    month, year = resolve_period(month, year, clock)

    known_scopes = ChartOfAccountsService(db).list_scopes()
    if scope_id is not None:
        if scope_id not in known_scopes:
            raise ScopeNotFoundError(scope_id)
        scopes = [scope_id]
    else:
        scopes = known_scopes

    logger.info(
        "reserve_appropriation_run_started",
        extra={
            "month": month,
            "year": year,
            "scope_count": len(scopes),
            "dry_run": dry_run,
            "force": force,
        },
    )

    summary = AppropriationRunSummary(
        month=month, year=year, dry_run=dry_run, force=force
    )
    for current_scope in scopes:
        service = ReserveFundService(
            db, current_scope, config, dispatcher=dispatcher, clock=clock
        )
        try:
            result = _process_scope(service, month, year, force, dry_run)
            if dry_run:
                db.rollback()
                dispatcher.discard_pending()
            else:
                db.commit()
                dispatcher.publish_pending()
        except Exception as e:
            db.rollback()
            dispatcher.discard_pending()
            logger.exception(
                "reserve_appropriation_scope_failed",
                extra={
                    "scope_id": current_scope,
                    "month": month,
                    "year": year,
                    "error": str(e),
                },
            )
            result = ScopeAppropriationResult(
                scope_id=current_scope,
                outcome=AppropriationOutcome.FAILED,
                message=str(e),
            )
        summary.results.append(result)

    logger.info(
        "reserve_appropriation_run_finished",
        extra={
            "month": month,
            "year": year,
            "created_count": summary.created_count,
            "skipped_count": summary.skipped_count,
            "failed_count": summary.failed_count,
        },
    )
    return summary
