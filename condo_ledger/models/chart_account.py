"""
Chart of accounts model.

Every account of a conjunto (cash, receivables, the reserve
fund, operating income, ...) is a node in a hierarchical
catalog. Only leaf accounts that accept posting receive
entries; summary accounts exist for grouping.
"""

from datetime import datetime

from sqlalchemy import (
    String, Boolean, DateTime, Integer, ForeignKey,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from condo_ledger.models.base import Base
from condo_ledger.models.enums import AccountType, AccountNature, EntrySide


class ChartAccount(Base):
    """
    A single account in a scope's chart of accounts.

    Once referenced by entries, an account is never deleted,
    only retired via is_active=False.
    """

    __tablename__ = "chart_of_accounts"
    __table_args__ = (
        UniqueConstraint("scope_id", "code", name="uq_chart_scope_code"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    scope_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum"),
        nullable=False,
    )
    nature: Mapped[AccountNature] = mapped_column(
        SAEnum(AccountNature, name="account_nature_enum"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Lookup only; the hierarchy is never walked to post entries
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("chart_of_accounts.id"), nullable=True
    )
    accepts_posting: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    requires_third_party: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    parent: Mapped["ChartAccount | None"] = relationship(
        remote_side=[id]
    )

    def __init__(self, **kwargs):
        # Column defaults only apply at INSERT; the validator reads
        # these flags on accounts that may not be flushed yet.
        kwargs.setdefault("accepts_posting", True)
        kwargs.setdefault("requires_third_party", False)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("level", 1)
        super().__init__(**kwargs)

    @property
    def full_name(self) -> str:
        return f"{self.code} - {self.name}"

    def increases_with(self, side: EntrySide) -> bool:
        """True when a movement on `side` follows the account's nature."""
        return side.value == self.nature.value

    def __repr__(self) -> str:
        return f"<ChartAccount {self.code} ({self.account_type.value})>"
