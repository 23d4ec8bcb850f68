"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before each test and dropped
after it, so no test data persists.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from condo_ledger.clock import FixedClock
from condo_ledger.config import ReserveFundConfig
from condo_ledger.events import EventDispatcher
from condo_ledger.models import Base
from condo_ledger.models.base import enable_sqlite_savepoints
from condo_ledger.schemas.ledger import EntryCreate, TransactionCreate
from condo_ledger.services.chart_service import ChartOfAccountsService
from condo_ledger.services.ledger_service import LedgerService


# SQLite, so the suite runs without database infrastructure.
# Postings use SAVEPOINTs, which pysqlite needs help with.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = enable_sqlite_savepoints(create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
))

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

SCOPE_ID = 1
OTHER_SCOPE_ID = 2
APARTMENT_ID = 101

# "Today" for most tests: early June 2024, so May 2024 is the
# previous month and still open for postings.
TODAY = date(2024, 6, 5)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def session_factory():
    """The sessionmaker bound to the test database."""
    return TestSessionLocal


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def config():
    return ReserveFundConfig()


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def ledger(db_session, clock, dispatcher):
    return LedgerService(db_session, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def chart(db_session):
    """Seed the default chart for SCOPE_ID; return accounts by code."""
    service = ChartOfAccountsService(db_session)
    service.seed_default_chart(SCOPE_ID)
    db_session.commit()
    return {a.code: a for a in service.get_accounts(SCOPE_ID)}


@pytest.fixture
def post_income(db_session, ledger, chart):
    """
    Post administration fee income for SCOPE_ID.

    DEBIT 130505 receivable (apartment) / CREDIT 413501 fees.
    The open-period check is skipped so any month can be filled.
    """
    def _post(amount, on: date, account_code: str = "413501"):
        amount = Decimal(str(amount))
        transaction, _ = ledger.create_and_post(
            SCOPE_ID,
            TransactionCreate(
                transaction_date=on,
                description=f"Administration fee invoice {on:%m/%Y}",
                reference_type="invoice",
                reference_id=1,
                entries=[
                    EntryCreate(
                        account_id=chart["130505"].id,
                        description="Fee receivable",
                        debit_amount=amount,
                        third_party_type="apartment",
                        third_party_id=APARTMENT_ID,
                    ),
                    EntryCreate(
                        account_id=chart[account_code].id,
                        description="Administration fee",
                        credit_amount=amount,
                    ),
                ],
            ),
            actor_id=7,
            skip_period_validation=True,
        )
        db_session.commit()
        return transaction

    return _post
