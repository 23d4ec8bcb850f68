"""
Tests for the LedgerService.

Tests cover:
- Draft creation and transaction numbering
- Validated posting (errors block, warnings do not)
- Atomic create-and-post
- Voiding and reversal
- Account balances from posted entries
- Scope isolation
"""

from datetime import date
from decimal import Decimal

import pytest

from condo_ledger.events import TransactionPosted
from condo_ledger.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    TransactionNotDraftError,
    TransactionNotFoundError,
    TransactionNotPostedError,
    UnbalancedTransactionError,
    ValidationFailedError,
)
from condo_ledger.models.enums import TransactionStatus
from condo_ledger.models.ledger_transaction import LedgerTransaction
from condo_ledger.schemas.ledger import EntryCreate, TransactionCreate


SCOPE_ID = 1
OTHER_SCOPE_ID = 2


# --- Helper to reduce repetition ---

def cash_sale(chart, amount, on=date(2024, 5, 20), description="Parking fee"):
    """DEBIT cash / CREDIT fee income."""
    return TransactionCreate(
        transaction_date=on,
        description=description,
        entries=[
            EntryCreate(
                account_id=chart["110505"].id,
                description="Cash received",
                debit_amount=Decimal(amount),
            ),
            EntryCreate(
                account_id=chart["413505"].id,
                description=description,
                credit_amount=Decimal(amount),
            ),
        ],
    )


class TestCreateTransaction:

    def test_creates_draft_with_number(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(
            SCOPE_ID, cash_sale(chart, "50000")
        )
        db_session.commit()

        assert transaction.id is not None
        assert transaction.status == TransactionStatus.DRAFT
        assert transaction.transaction_number == "TXN-202405-0001"
        assert transaction.total_debit == Decimal("50000.00")

    def test_numbers_are_sequential_per_month(self, db_session, ledger, chart):
        first = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "1"))
        second = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "2"))
        june = ledger.create_transaction(
            SCOPE_ID, cash_sale(chart, "3", on=date(2024, 6, 1))
        )

        assert first.transaction_number == "TXN-202405-0001"
        assert second.transaction_number == "TXN-202405-0002"
        assert june.transaction_number == "TXN-202406-0001"

    def test_numbering_continues_past_9999(self, db_session, ledger, chart):
        for number in ("TXN-202405-9999", "TXN-202405-10000"):
            db_session.add(LedgerTransaction(
                scope_id=SCOPE_ID,
                transaction_number=number,
                transaction_date=date(2024, 5, 1),
                description="Imported",
            ))
        db_session.flush()

        assert ledger.next_transaction_number(
            SCOPE_ID, date(2024, 5, 31)
        ) == "TXN-202405-10001"

    def test_account_of_other_scope_rejected(self, db_session, ledger, chart):
        with pytest.raises(AccountNotFoundError):
            ledger.create_transaction(OTHER_SCOPE_ID, cash_sale(chart, "10"))

    def test_add_and_remove_entries(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(SCOPE_ID, TransactionCreate(
            transaction_date=date(2024, 5, 20),
            description="Manual entry",
        ))
        entry = ledger.add_entry(transaction.id, EntryCreate(
            account_id=chart["110505"].id,
            description="Cash",
            debit_amount=Decimal("10"),
        ))
        assert transaction.total_debit == Decimal("10.00")

        ledger.remove_entry(entry.id)
        assert transaction.entries == []
        assert transaction.total_debit == Decimal("0.00")


class TestPostTransaction:

    def test_post_balanced_draft(self, db_session, ledger, chart, dispatcher):
        received = []
        dispatcher.subscribe(TransactionPosted, received.append)
        transaction = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "50000"))

        event = ledger.post_transaction(transaction.id, actor_id=7)

        # Listeners only hear about it once the caller commits
        assert received == []
        assert dispatcher.pending == (event,)

        db_session.commit()
        dispatcher.publish_pending()

        assert transaction.status == TransactionStatus.POSTED
        assert transaction.posted_by == 7
        assert event.transaction_id == transaction.id
        assert received == [event]

    def test_unbalanced_draft_stays_draft(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "100"))
        ledger.add_entry(transaction.id, EntryCreate(
            account_id=chart["110505"].id,
            description="Extra",
            debit_amount=Decimal("0.01"),
        ))

        with pytest.raises(ValidationFailedError, match="double-entry") as exc_info:
            ledger.post_transaction(transaction.id, actor_id=7)

        assert not exc_info.value.result.is_valid
        db_session.refresh(transaction)
        assert transaction.status == TransactionStatus.DRAFT

    def test_closed_period_rejected(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(
            SCOPE_ID, cash_sale(chart, "100", on=date(2024, 1, 31))
        )

        with pytest.raises(ValidationFailedError, match="Closed prior period"):
            ledger.post_transaction(transaction.id, actor_id=7)

    def test_closed_period_can_be_skipped(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(
            SCOPE_ID, cash_sale(chart, "100", on=date(2024, 1, 31))
        )
        ledger.post_transaction(transaction.id, actor_id=7, skip_period_validation=True)
        assert transaction.is_posted

    def test_posting_twice_fails(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "100"))
        ledger.post_transaction(transaction.id, actor_id=7)

        with pytest.raises(AlreadyPostedError):
            ledger.post_transaction(transaction.id, actor_id=7)

    def test_missing_transaction(self, db_session, ledger):
        with pytest.raises(TransactionNotFoundError):
            ledger.post_transaction(999, actor_id=7)


class TestCreateAndPost:

    def test_creates_and_posts_atomically(self, db_session, ledger, chart):
        transaction, event = ledger.create_and_post(
            SCOPE_ID, cash_sale(chart, "75000"), actor_id=7
        )
        db_session.commit()

        assert transaction.is_posted
        assert event.total_amount == Decimal("75000.00")

    def test_failure_leaves_nothing_behind(self, db_session, ledger, chart):
        request = cash_sale(chart, "100")
        request.entries[1].credit_amount = Decimal("90")

        with pytest.raises(ValidationFailedError):
            ledger.create_and_post(SCOPE_ID, request, actor_id=7)
        db_session.commit()

        assert db_session.query(LedgerTransaction).count() == 0

    def test_counterparty_required(self, db_session, ledger, chart):
        request = TransactionCreate(
            transaction_date=date(2024, 5, 20),
            description="Fee invoice",
            entries=[
                EntryCreate(
                    account_id=chart["130505"].id,
                    description="Receivable",
                    debit_amount=Decimal("100"),
                ),
                EntryCreate(
                    account_id=chart["413501"].id,
                    description="Fee",
                    credit_amount=Decimal("100"),
                ),
            ],
        )

        with pytest.raises(ValidationFailedError, match="Missing required counterparty"):
            ledger.create_and_post(SCOPE_ID, request, actor_id=7)

    def test_empty_entries_rejected(self, db_session, ledger, chart):
        request = TransactionCreate(
            transaction_date=date(2024, 5, 20),
            description="Nothing",
        )
        with pytest.raises(ValidationFailedError, match="no entries"):
            ledger.create_and_post(SCOPE_ID, request, actor_id=7)


class TestVoidAndReverse:

    def test_void_draft(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "100"))
        ledger.void_transaction(transaction.id, actor_id=7)

        assert transaction.status == TransactionStatus.VOID
        with pytest.raises(TransactionNotDraftError):
            ledger.post_transaction(transaction.id, actor_id=7)

    def test_posted_transaction_cannot_be_voided(self, db_session, ledger, chart):
        transaction, _ = ledger.create_and_post(
            SCOPE_ID, cash_sale(chart, "100"), actor_id=7
        )
        with pytest.raises(AlreadyPostedError):
            ledger.void_transaction(transaction.id)

    def test_reversal_offsets_original(self, db_session, ledger, chart):
        original, _ = ledger.create_and_post(
            SCOPE_ID, cash_sale(chart, "100"), actor_id=7
        )

        reversal = ledger.reverse_transaction(original.id, actor_id=7)
        db_session.commit()

        assert reversal.is_posted
        assert reversal.reference_type == "reversal"
        assert reversal.reference_id == original.id
        assert original.is_posted
        assert ledger.get_account_balance(chart["110505"].id) == Decimal("0.00")

    def test_only_posted_can_be_reversed(self, db_session, ledger, chart):
        draft = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "100"))
        with pytest.raises(TransactionNotPostedError):
            ledger.reverse_transaction(draft.id, actor_id=7)


class TestQueries:

    def test_get_transaction_is_scoped(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "100"))

        assert ledger.get_transaction(SCOPE_ID, transaction.id) is transaction
        with pytest.raises(TransactionNotFoundError):
            ledger.get_transaction(OTHER_SCOPE_ID, transaction.id)

    def test_balance_counts_posted_entries_only(self, db_session, ledger, chart):
        ledger.create_and_post(SCOPE_ID, cash_sale(chart, "100"), actor_id=7)
        ledger.create_and_post(SCOPE_ID, cash_sale(chart, "50"), actor_id=7)
        ledger.create_transaction(SCOPE_ID, cash_sale(chart, "999"))
        db_session.commit()

        assert ledger.get_account_balance(chart["110505"].id) == Decimal("150.00")
        # Credit-nature income also reports a positive balance
        assert ledger.get_account_balance(chart["413505"].id) == Decimal("150.00")

    def test_balance_respects_date_range(self, db_session, ledger, chart):
        ledger.create_and_post(
            SCOPE_ID, cash_sale(chart, "100", on=date(2024, 4, 10)), actor_id=7
        )
        ledger.create_and_post(
            SCOPE_ID, cash_sale(chart, "40", on=date(2024, 5, 10)), actor_id=7
        )

        balance = ledger.get_account_balance(
            chart["110505"].id, start=date(2024, 5, 1), end=date(2024, 5, 31)
        )
        assert balance == Decimal("40.00")

    def test_unbalanced_error_from_aggregate(self, db_session, ledger, chart):
        transaction = ledger.create_transaction(SCOPE_ID, cash_sale(chart, "100"))
        transaction.entries[1].credit_amount = Decimal("1")

        with pytest.raises(UnbalancedTransactionError):
            transaction.post(actor_id=7, now=ledger.clock.now())
