"""
Tests for the monthly appropriation job.

Tests cover:
- Period defaults (previous month, current year)
- Fatal argument errors raised before any scope runs
- Per-scope outcomes and isolation of failures
- Dry runs
- Event delivery only after a successful commit
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from condo_ledger.clock import FixedClock
from condo_ledger.config import ReserveFundConfig
from condo_ledger.events import (
    EventDispatcher,
    ReserveAppropriationCreated,
    TransactionPosted,
)
from condo_ledger.exceptions import InvalidPeriodError, ScopeNotFoundError
from condo_ledger.jobs.reserve_fund_job import (
    resolve_period,
    run_monthly_appropriation,
)
from condo_ledger.models.enums import AppropriationOutcome
from condo_ledger.models.ledger_transaction import LedgerTransaction
from condo_ledger.schemas.chart import ChartAccountCreate
from condo_ledger.schemas.ledger import EntryCreate, TransactionCreate
from condo_ledger.services.chart_service import ChartOfAccountsService
from condo_ledger.services.ledger_service import LedgerService


SCOPE_ID = 1
OTHER_SCOPE_ID = 2


def outcomes(summary):
    return {r.scope_id: r.outcome for r in summary.results}


class TestResolvePeriod:

    def test_defaults_to_previous_month(self):
        assert resolve_period(None, None, FixedClock(date(2024, 6, 5))) == (5, 2024)

    def test_january_rolls_back_to_december(self):
        assert resolve_period(None, None, FixedClock(date(2024, 1, 5))) == (12, 2023)

    def test_month_only_uses_current_year(self):
        assert resolve_period(3, None, FixedClock(date(2024, 1, 5))) == (3, 2024)

    def test_explicit_period(self):
        assert resolve_period(5, 2023, FixedClock(date(2024, 1, 5))) == (5, 2023)

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, month):
        with pytest.raises(InvalidPeriodError, match="between 1 and 12"):
            resolve_period(month, 2024, FixedClock(date(2024, 1, 5)))


class TestRunMonthlyAppropriation:

    def test_appropriates_previous_month(self, db_session, clock, config, post_income):
        post_income("1000000", date(2024, 5, 15))

        summary = run_monthly_appropriation(db_session, config=config, clock=clock)

        assert (summary.month, summary.year) == (5, 2024)
        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.CREATED}
        result = summary.results[0]
        assert result.amount == Decimal("300000.00")
        assert result.monthly_income == Decimal("1000000.00")
        assert result.transaction_number is not None
        assert summary.exit_code == 0

    def test_second_run_skips_existing(self, db_session, clock, config, post_income):
        post_income("1000000", date(2024, 5, 15))
        run_monthly_appropriation(db_session, config=config, clock=clock)

        summary = run_monthly_appropriation(db_session, config=config, clock=clock)

        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.SKIPPED_EXISTING}
        assert summary.skipped_count == 1
        assert summary.exit_code == 0

    def test_no_income_is_skipped(self, db_session, clock, config, chart):
        summary = run_monthly_appropriation(db_session, config=config, clock=clock)

        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.SKIPPED_NO_INCOME}
        assert summary.exit_code == 0

    def test_dry_run_posts_nothing(self, db_session, clock, config, post_income):
        post_income("1000000", date(2024, 5, 15))

        summary = run_monthly_appropriation(
            db_session, dry_run=True, config=config, clock=clock
        )

        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.DRY_RUN}
        assert summary.results[0].amount == Decimal("300000.00")
        assert db_session.query(LedgerTransaction).filter(
            LedgerTransaction.reference_type == "reserve_fund_appropriation"
        ).count() == 0

    def test_unknown_scope_is_fatal(self, db_session, clock, config, chart):
        with pytest.raises(ScopeNotFoundError):
            run_monthly_appropriation(
                db_session, scope_id=99, config=config, clock=clock
            )

    def test_invalid_month_is_fatal(self, db_session, clock, config, chart):
        with pytest.raises(InvalidPeriodError):
            run_monthly_appropriation(db_session, month=13, config=config, clock=clock)

    def test_each_scope_gets_its_own_outcome(
        self, db_session, clock, config, post_income
    ):
        post_income("1000000", date(2024, 5, 15))
        ChartOfAccountsService(db_session).create_account(
            OTHER_SCOPE_ID, ChartAccountCreate(code="1", name="ACTIVO")
        )
        db_session.commit()

        summary = run_monthly_appropriation(db_session, config=config, clock=clock)

        assert outcomes(summary) == {
            SCOPE_ID: AppropriationOutcome.CREATED,
            OTHER_SCOPE_ID: AppropriationOutcome.SKIPPED_NO_INCOME,
        }

    def test_failing_scope_does_not_stop_others(
        self, db_session, ledger, clock, config, post_income
    ):
        post_income("1000000", date(2024, 5, 15))
        chart_service = ChartOfAccountsService(db_session)
        chart_service.seed_default_chart(OTHER_SCOPE_ID)
        ledger.create_and_post(OTHER_SCOPE_ID, TransactionCreate(
            transaction_date=date(2024, 5, 15),
            description="Administration fee invoice 05/2024",
            entries=[
                EntryCreate(
                    account_id=chart_service.get_account_by_code(
                        OTHER_SCOPE_ID, "130505"
                    ).id,
                    description="Fee receivable",
                    debit_amount=Decimal("500000"),
                    third_party_type="apartment",
                    third_party_id=201,
                ),
                EntryCreate(
                    account_id=chart_service.get_account_by_code(
                        OTHER_SCOPE_ID, "413501"
                    ).id,
                    description="Administration fee",
                    credit_amount=Decimal("500000"),
                ),
            ],
        ), actor_id=7)
        # The second scope retired its reserve fund account
        chart_service.deactivate_account(
            chart_service.get_account_by_code(OTHER_SCOPE_ID, "320501").id
        )
        db_session.commit()

        summary = run_monthly_appropriation(db_session, config=config, clock=clock)

        assert outcomes(summary) == {
            SCOPE_ID: AppropriationOutcome.CREATED,
            OTHER_SCOPE_ID: AppropriationOutcome.FAILED,
        }
        assert summary.exit_code == 1
        assert db_session.query(LedgerTransaction).filter(
            LedgerTransaction.reference_type == "reserve_fund_appropriation"
        ).count() == 1

    def test_missing_accounts_fail_the_run(self, db_session, clock, post_income):
        post_income("1000000", date(2024, 5, 15))

        summary = run_monthly_appropriation(
            db_session,
            config=ReserveFundConfig(fund_account_code="329999"),
            clock=clock,
        )

        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.FAILED}
        assert "329999" in summary.results[0].message
        assert summary.failed_count == 1
        assert summary.exit_code == 1

    def test_single_scope(self, db_session, clock, config, post_income):
        post_income("1000000", date(2024, 5, 15))
        ChartOfAccountsService(db_session).seed_default_chart(OTHER_SCOPE_ID)
        db_session.commit()

        summary = run_monthly_appropriation(
            db_session, scope_id=OTHER_SCOPE_ID, config=config, clock=clock
        )

        assert list(outcomes(summary)) == [OTHER_SCOPE_ID]

    def test_number_collision_fails_the_scope(
        self, db_session, clock, config, post_income, monkeypatch
    ):
        post_income("1000000", date(2024, 5, 15))
        monkeypatch.setattr(
            LedgerService,
            "next_transaction_number",
            lambda self, scope_id, on: "TXN-202405-0001",
        )

        summary = run_monthly_appropriation(
            db_session, month=5, year=2024, config=config, clock=clock
        )

        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.FAILED}
        assert summary.exit_code == 1
        assert db_session.query(LedgerTransaction).filter(
            LedgerTransaction.reference_type == "reserve_fund_appropriation"
        ).count() == 0


class TestEventDelivery:

    def test_events_delivered_after_commit(
        self, db_session, clock, config, post_income
    ):
        post_income("1000000", date(2024, 5, 15))
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(ReserveAppropriationCreated, received.append)

        summary = run_monthly_appropriation(
            db_session, config=config, clock=clock, dispatcher=dispatcher
        )

        assert len(received) == 1
        assert received[0].transaction_id == summary.results[0].transaction_id
        assert dispatcher.pending == ()

    def test_failed_commit_delivers_nothing(
        self, db_session, clock, config, post_income, monkeypatch
    ):
        post_income("1000000", date(2024, 5, 15))
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(ReserveAppropriationCreated, received.append)
        dispatcher.subscribe(TransactionPosted, received.append)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", failing_commit)

        summary = run_monthly_appropriation(
            db_session, config=config, clock=clock, dispatcher=dispatcher
        )

        assert outcomes(summary) == {SCOPE_ID: AppropriationOutcome.FAILED}
        assert received == []
        assert dispatcher.pending == ()
        assert db_session.query(LedgerTransaction).filter(
            LedgerTransaction.reference_type == "reserve_fund_appropriation"
        ).count() == 0

    def test_dry_run_delivers_nothing(self, db_session, clock, config, post_income):
        post_income("1000000", date(2024, 5, 15))
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(ReserveAppropriationCreated, received.append)

        run_monthly_appropriation(
            db_session, dry_run=True, config=config, clock=clock,
            dispatcher=dispatcher,
        )

        assert received == []
