"""initial ledger schema

Revision ID: 0001
Revises:
Create Date: 2024-06-01 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum columns store member names
account_type_enum = sa.Enum(
    "ASSET", "LIABILITY", "EQUITY", "INCOME", "EXPENSE",
    name="account_type_enum",
)
account_nature_enum = sa.Enum("DEBIT", "CREDIT", name="account_nature_enum")
transaction_status_enum = sa.Enum(
    "DRAFT", "POSTED", "VOID",
    name="transaction_status_enum",
    create_constraint=True,
)


def upgrade() -> None:
    op.create_table(
        "chart_of_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scope_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("account_type", account_type_enum, nullable=False),
        sa.Column("nature", account_nature_enum, nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column(
            "parent_id", sa.Integer(),
            sa.ForeignKey("chart_of_accounts.id"), nullable=True,
        ),
        sa.Column("accepts_posting", sa.Boolean(), nullable=False),
        sa.Column("requires_third_party", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("scope_id", "code", name="uq_chart_scope_code"),
    )
    op.create_index(
        "ix_chart_of_accounts_scope_id", "chart_of_accounts", ["scope_id"]
    )

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scope_id", sa.Integer(), nullable=False),
        sa.Column("transaction_number", sa.String(40), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("status", transaction_status_enum, nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("reference_type", sa.String(50), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("appropriation_key", sa.String(40), nullable=True),
        sa.Column("total_debit", sa.Numeric(19, 2), nullable=False),
        sa.Column("total_credit", sa.Numeric(19, 2), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("posted_by", sa.Integer(), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "scope_id", "transaction_number",
            name="uq_transaction_scope_number",
        ),
        sa.UniqueConstraint(
            "scope_id", "appropriation_key",
            name="uq_transaction_scope_appropriation",
        ),
    )
    op.create_index(
        "ix_ledger_transactions_scope_id", "ledger_transactions", ["scope_id"]
    )
    op.create_index(
        "ix_ledger_transactions_transaction_date",
        "ledger_transactions",
        ["transaction_date"],
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id", sa.Integer(),
            sa.ForeignKey("ledger_transactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("chart_of_accounts.id"), nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("debit_amount", sa.Numeric(19, 2), nullable=False),
        sa.Column("credit_amount", sa.Numeric(19, 2), nullable=False),
        sa.Column("third_party_type", sa.String(50), nullable=True),
        sa.Column("third_party_id", sa.Integer(), nullable=True),
    )
    op.create_index(
        "ix_ledger_entries_transaction_id", "ledger_entries", ["transaction_id"]
    )
    op.create_index(
        "ix_ledger_entries_account_id", "ledger_entries", ["account_id"]
    )


def downgrade() -> None:
    op.drop_table("ledger_entries")
    op.drop_table("ledger_transactions")
    op.drop_table("chart_of_accounts")
    transaction_status_enum.drop(op.get_bind(), checkfirst=True)
    account_nature_enum.drop(op.get_bind(), checkfirst=True)
    account_type_enum.drop(op.get_bind(), checkfirst=True)
