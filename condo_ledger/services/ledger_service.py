"""
Ledger service, the only writer of the ledger.

This service enforces the fundamental rules:
1. Every posted transaction balances (debits = credits)
2. Posted history is never modified; corrections are new
   offsetting transactions
3. Entries only go to active posting accounts of the same scope
4. Posting passes the integrity validator

Creation and posting run inside a SAVEPOINT: either every entry
and the status flip are kept, or nothing is. The caller
controls the outer commit.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from condo_ledger.clock import Clock, SystemClock
from condo_ledger.events import EventDispatcher, TransactionPosted
from condo_ledger.exceptions import (
    AccountNotFoundError,
    TransactionNotFoundError,
    TransactionNotPostedError,
    ValidationFailedError,
)
from condo_ledger.models.chart_account import ChartAccount
from condo_ledger.models.enums import AccountNature, TransactionStatus
from condo_ledger.models.ledger_entry import LedgerEntry
from condo_ledger.models.ledger_transaction import LedgerTransaction
from condo_ledger.money import to_money
from condo_ledger.schemas.ledger import EntryCreate, TransactionCreate
from condo_ledger.services.validation_service import TransactionValidator

logger = logging.getLogger(__name__)


class LedgerService:
    """
    All ledger writes pass through this service.

    The service takes a database session as a constructor
    argument. The caller decides when to commit or rollback.
    """

    def __init__(
        self,
        db: Session,
        validator: TransactionValidator | None = None,
        dispatcher: EventDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.validator = validator or TransactionValidator(db, clock=self.clock)
        self.dispatcher = dispatcher or EventDispatcher()

    # --- Drafts ---

    def next_transaction_number(self, scope_id: int, on: date) -> str:
        """Allocate TXN-YYYYMM-NNNN, sequential per scope and month."""
        prefix = f"TXN-{on:%Y%m}-"
        number = LedgerTransaction.transaction_number
        # Past 9999 the suffix grows a digit, so longer sorts higher
        last = self.db.execute(
            select(number)
            .where(
                LedgerTransaction.scope_id == scope_id,
                number.like(f"{prefix}%"),
            )
            .order_by(func.length(number).desc(), number.desc())
            .limit(1)
        ).scalar()
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    def create_transaction(
        self,
        scope_id: int,
        request: TransactionCreate,
        appropriation_key: str | None = None,
    ) -> LedgerTransaction:
        """Create a draft, with any entries given in the request."""
        transaction = LedgerTransaction(
            scope_id=scope_id,
            transaction_number=self.next_transaction_number(
                scope_id, request.transaction_date
            ),
            transaction_date=request.transaction_date,
            description=request.description,
            reference_type=request.reference_type,
            reference_id=request.reference_id,
            appropriation_key=appropriation_key,
            created_by=request.created_by,
        )
        for entry in request.entries:
            self._add_entry(transaction, entry)
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def _resolve_account(self, scope_id: int, account_id: int) -> ChartAccount:
        account = self.db.get(ChartAccount, account_id)
        # An account of another scope is as good as missing
        if account is None or account.scope_id != scope_id:
            raise AccountNotFoundError(str(account_id), scope_id)
        return account

    def _add_entry(
        self, transaction: LedgerTransaction, request: EntryCreate
    ) -> LedgerEntry:
        account = self._resolve_account(transaction.scope_id, request.account_id)
        return transaction.add_entry(
            account,
            request.description,
            debit_amount=request.debit_amount,
            credit_amount=request.credit_amount,
            third_party_type=request.third_party_type,
            third_party_id=request.third_party_id,
        )

    def add_entry(self, transaction_id: int, request: EntryCreate) -> LedgerEntry:
        transaction = self._get(transaction_id)
        entry = self._add_entry(transaction, request)
        self.db.flush()
        return entry

    def remove_entry(self, entry_id: int) -> LedgerTransaction:
        entry = self.db.get(LedgerEntry, entry_id)
        if entry is None:
            raise TransactionNotFoundError(f"entry {entry_id}")
        transaction = entry.transaction
        transaction.remove_entry(entry)
        self.db.flush()
        return transaction

    # --- Posting ---

    def post_transaction(
        self,
        transaction_id: int,
        actor_id: int | None,
        skip_period_validation: bool = False,
    ) -> TransactionPosted:
        """
        Validate and post a draft.

        Raises ValidationFailedError with the structured result
        when a rule fails, and the aggregate's errors for invalid
        state or unbalanced entries. The transaction stays draft
        on failure. The event is queued on the dispatcher and
        reaches listeners once the caller commits.
        """
        transaction = self._get(transaction_id)
        with self.db.begin_nested():
            event = self._post(transaction, actor_id, skip_period_validation)
        self.dispatcher.enqueue(event)
        return event

    def _post(
        self,
        transaction: LedgerTransaction,
        actor_id: int | None,
        skip_period_validation: bool,
    ) -> TransactionPosted:
        result = self.validator.validate_transaction_integrity(
            transaction, skip_period_validation=skip_period_validation
        )
        if not result.is_valid:
            logger.warning(
                "transaction_validation_failed",
                extra={
                    "scope_id": transaction.scope_id,
                    "transaction_number": transaction.transaction_number,
                    "errors": result.errors,
                },
            )
            raise ValidationFailedError(transaction.transaction_number, result)
        if result.warnings:
            logger.warning(
                "transaction_posted_with_warnings",
                extra={
                    "scope_id": transaction.scope_id,
                    "transaction_number": transaction.transaction_number,
                    "warnings": result.warnings,
                },
            )

        event = transaction.post(actor_id, self.clock.now())
        self.db.flush()
        logger.info(
            "transaction_posted",
            extra={
                "scope_id": transaction.scope_id,
                "transaction_number": transaction.transaction_number,
                "total_amount": str(transaction.total_amount),
            },
        )
        return event

    def create_and_post(
        self,
        scope_id: int,
        request: TransactionCreate,
        actor_id: int | None,
        appropriation_key: str | None = None,
        approve: bool = False,
        skip_period_validation: bool = False,
    ) -> tuple[LedgerTransaction, TransactionPosted]:
        """
        Create a transaction with its entries and post it atomically.

        Either the transaction, its entries and the posted status
        are all written, or none of them is.
        """
        with self.db.begin_nested():
            transaction = self.create_transaction(
                scope_id, request, appropriation_key=appropriation_key
            )
            if approve:
                transaction.approve(actor_id, self.clock.now())
            event = self._post(transaction, actor_id, skip_period_validation)
        self.dispatcher.enqueue(event)
        return transaction, event

    def void_transaction(
        self, transaction_id: int, actor_id: int | None = None
    ) -> LedgerTransaction:
        transaction = self._get(transaction_id)
        transaction.void()
        self.db.flush()
        logger.info(
            "transaction_voided",
            extra={
                "scope_id": transaction.scope_id,
                "transaction_number": transaction.transaction_number,
                "actor_id": actor_id,
            },
        )
        return transaction

    def reverse_transaction(
        self, transaction_id: int, actor_id: int | None
    ) -> LedgerTransaction:
        """
        Offset a posted transaction with a new one.

        The original is not modified. The reversal mirrors every
        entry with debit and credit swapped and points back to
        the original through its reference.
        """
        original = self._get(transaction_id)
        if original.status != TransactionStatus.POSTED:
            raise TransactionNotPostedError(
                original.transaction_number, original.status.value
            )

        entries = [
            EntryCreate(
                account_id=entry.account_id,
                description=f"Reversal: {entry.description}",
                debit_amount=entry.credit_amount,
                credit_amount=entry.debit_amount,
                third_party_type=entry.third_party_type,
                third_party_id=entry.third_party_id,
            )
            for entry in original.entries
        ]
        reversal, _ = self.create_and_post(
            original.scope_id,
            TransactionCreate(
                transaction_date=self.clock.today(),
                description=f"Reversal of {original.transaction_number}",
                reference_type="reversal",
                reference_id=original.id,
                created_by=actor_id,
                entries=entries,
            ),
            actor_id,
        )
        return reversal

    # --- Queries ---

    def _get(self, transaction_id: int) -> LedgerTransaction:
        transaction = self.db.get(LedgerTransaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def get_transaction(self, scope_id: int, transaction_id: int) -> LedgerTransaction:
        transaction = self._get(transaction_id)
        if transaction.scope_id != scope_id:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def get_account_balance(
        self,
        account_id: int,
        start: date | None = None,
        end: date | None = None,
    ) -> Decimal:
        """
        Balance of an account from its posted entries.

        Balance is never stored. Debit-nature accounts report
        debits - credits; credit-nature accounts credits - debits.
        """
        account = self.db.get(ChartAccount, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))

        query = (
            select(
                func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
            )
            .join(LedgerTransaction, LedgerEntry.transaction_id == LedgerTransaction.id)
            .where(
                LedgerEntry.account_id == account_id,
                LedgerTransaction.scope_id == account.scope_id,
                LedgerTransaction.status == TransactionStatus.POSTED,
            )
        )
        if start is not None:
            query = query.where(LedgerTransaction.transaction_date >= start)
        if end is not None:
            query = query.where(LedgerTransaction.transaction_date <= end)

        debits, credits = self.db.execute(query).one()
        debits, credits = to_money(debits), to_money(credits)
        if account.nature == AccountNature.DEBIT:
            return debits - credits
        return credits - debits
