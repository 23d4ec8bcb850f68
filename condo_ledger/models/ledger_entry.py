"""
Ledger entry model.

Each entry is one debit or credit line of a transaction,
posted to a single account. An entry belongs exclusively to
its transaction and is deleted with it; once the transaction
is posted the entry is never modified.
"""

from decimal import Decimal

from sqlalchemy import String, Integer, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models.base import Base
from condo_ledger.models.enums import EntrySide
from condo_ledger.money import ZERO


class LedgerEntry(Base):
    """
    A debit or credit line.

    Exactly one of debit_amount / credit_amount is non-zero and
    neither is negative. This is checked when the entry is added
    through LedgerTransaction.add_entry.
    """

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("ledger_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("chart_of_accounts.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=ZERO
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 2), nullable=False, default=ZERO
    )
    # Weak reference to an apartment, provider, ... owned by another domain
    third_party_type: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    third_party_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )

    transaction: Mapped["LedgerTransaction"] = relationship(
        back_populates="entries"
    )
    account: Mapped["ChartAccount"] = relationship()

    @property
    def is_debit(self) -> bool:
        return (self.debit_amount or ZERO) > 0

    @property
    def is_credit(self) -> bool:
        return (self.credit_amount or ZERO) > 0

    @property
    def side(self) -> EntrySide:
        return EntrySide.DEBIT if self.is_debit else EntrySide.CREDIT

    @property
    def amount(self) -> Decimal:
        return self.debit_amount if self.is_debit else self.credit_amount

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.side.value} {self.amount}>"
