"""
Ledger transaction model.

A transaction is one accounting event (an invoice, a payment,
a manual adjustment, the monthly reserve appropriation) made
of balanced debit and credit entries.

The transaction has a state machine:

    draft --post()--> posted   (terminal, entries frozen)
    draft --void()--> void     (terminal)

Posted history is never edited. Corrections are new,
offsetting transactions.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Integer, Numeric,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.events import TransactionPosted
from condo_ledger.exceptions import (
    AccountNotPostableError,
    AlreadyPostedError,
    InvalidEntryError,
    TransactionNotDraftError,
    UnbalancedTransactionError,
)
from condo_ledger.models.base import Base
from condo_ledger.models.enums import TransactionStatus
from condo_ledger.models.ledger_entry import LedgerEntry
from condo_ledger.money import ZERO, to_money


# Valid state transitions, the source of truth for the state machine
VALID_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.DRAFT: {TransactionStatus.POSTED, TransactionStatus.VOID},
    TransactionStatus.POSTED: set(),
    TransactionStatus.VOID: set(),
}

# Debits and credits are compared after quantizing to cents
BALANCE_TOLERANCE = Decimal("0.00")


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        UniqueConstraint(
            "scope_id", "transaction_number",
            name="uq_transaction_scope_number",
        ),
        # Closes the check-then-insert race of the monthly appropriation.
        # NULL keys (every other transaction) never collide.
        UniqueConstraint(
            "scope_id", "appropriation_key",
            name="uq_transaction_scope_appropriation",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    scope_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    transaction_number: Mapped[str] = mapped_column(
        String(40), nullable=False
    )
    transaction_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=TransactionStatus.DRAFT,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_type: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    appropriation_key: Mapped[str | None] = mapped_column(
        String(40), nullable=True
    )
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=ZERO
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=ZERO
    )
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    posted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    entries: Mapped[list[LedgerEntry]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by=LedgerEntry.id,
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("status", TransactionStatus.DRAFT)
        kwargs.setdefault("total_debit", ZERO)
        kwargs.setdefault("total_credit", ZERO)
        super().__init__(**kwargs)

    # --- State ---

    @property
    def is_draft(self) -> bool:
        return self.status == TransactionStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_balanced(self) -> bool:
        debit, credit = self.entry_totals()
        return abs(debit - credit) <= BALANCE_TOLERANCE

    @property
    def can_be_posted(self) -> bool:
        debit, _ = self.entry_totals()
        return (
            self.is_draft
            and len(self.entries) > 0
            and self.is_balanced
            and debit > 0
        )

    @property
    def total_amount(self) -> Decimal:
        return to_money(self.total_debit)

    def can_transition_to(self, new_status: TransactionStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    # --- Entries ---

    def entry_totals(self) -> tuple[Decimal, Decimal]:
        """Sum debits and credits straight from the entries."""
        debit = sum((to_money(e.debit_amount) for e in self.entries), ZERO)
        credit = sum((to_money(e.credit_amount) for e in self.entries), ZERO)
        return debit, credit

    def recalculate_totals(self) -> None:
        self.total_debit, self.total_credit = self.entry_totals()

    def _require_draft(self) -> None:
        if self.status == TransactionStatus.POSTED:
            raise AlreadyPostedError(self.transaction_number)
        if self.status != TransactionStatus.DRAFT:
            raise TransactionNotDraftError(
                self.transaction_number, self.status.value
            )

    def add_entry(
        self,
        account,
        description: str,
        debit_amount=ZERO,
        credit_amount=ZERO,
        third_party_type: str | None = None,
        third_party_id: int | None = None,
    ) -> LedgerEntry:
        """
        Append a debit or credit line to a draft transaction.

        Raises InvalidEntryError unless exactly one amount is
        positive, and AccountNotPostableError for summary or
        retired accounts.
        """
        if self.status != TransactionStatus.DRAFT:
            raise TransactionNotDraftError(
                self.transaction_number, self.status.value
            )

        debit = to_money(debit_amount)
        credit = to_money(credit_amount)
        if debit < 0 or credit < 0:
            raise InvalidEntryError("amounts cannot be negative")
        if debit > 0 and credit > 0:
            raise InvalidEntryError(
                "an entry cannot carry both a debit and a credit"
            )
        if debit == 0 and credit == 0:
            raise InvalidEntryError(
                "an entry must carry a debit or a credit greater than zero"
            )

        if not account.accepts_posting:
            raise AccountNotPostableError(
                account.code, "summary account does not accept posting"
            )
        if not account.is_active:
            raise AccountNotPostableError(account.code, "account is inactive")

        entry = LedgerEntry(
            account=account,
            description=description,
            debit_amount=debit,
            credit_amount=credit,
            third_party_type=third_party_type,
            third_party_id=third_party_id,
        )
        self.entries.append(entry)
        self.recalculate_totals()
        return entry

    def remove_entry(self, entry: LedgerEntry) -> None:
        if self.status != TransactionStatus.DRAFT:
            raise TransactionNotDraftError(
                self.transaction_number, self.status.value
            )
        self.entries.remove(entry)
        self.recalculate_totals()

    # --- Transitions ---

    def post(self, actor_id: int | None, now: datetime) -> TransactionPosted:
        """
        Post a balanced draft.

        Totals are recomputed from the entries first. On any
        failure the status stays draft. Returns the event the
        caller forwards to listeners.
        """
        self._require_draft()
        self.recalculate_totals()

        if not self.entries or self.total_debit <= 0:
            raise UnbalancedTransactionError(self.total_debit, self.total_credit)
        if abs(self.total_debit - self.total_credit) > BALANCE_TOLERANCE:
            raise UnbalancedTransactionError(self.total_debit, self.total_credit)

        self.status = TransactionStatus.POSTED
        self.posted_at = now
        self.posted_by = actor_id

        return TransactionPosted(
            transaction_id=self.id,
            scope_id=self.scope_id,
            transaction_number=self.transaction_number,
            total_amount=self.total_amount,
            posted_at=now,
            reference_type=self.reference_type,
        )

    def void(self) -> None:
        self._require_draft()
        self.status = TransactionStatus.VOID

    def approve(self, actor_id: int, now: datetime) -> None:
        """Record the optional second signature."""
        if self.status == TransactionStatus.VOID:
            raise TransactionNotDraftError(
                self.transaction_number, self.status.value
            )
        self.approved_by = actor_id
        self.approved_at = now

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.transaction_number} "
            f"{self.total_debit} ({self.status.value})>"
        )
