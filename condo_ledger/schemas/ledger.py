"""
Pydantic schemas for ledger operations.

These define the contract with callers: what data comes in,
what data goes out. They are separate from the database
models because the call shape and the storage shape differ.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from condo_ledger.models.enums import TransactionStatus


# --- Request Schemas ---

class EntryCreate(BaseModel):
    """
    A single debit or credit line.

    The exactly-one-side rule is enforced by the transaction
    aggregate, which raises InvalidEntryError.
    """
    account_id: int
    description: str = Field(min_length=1, max_length=255)
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    third_party_type: str | None = Field(default=None, max_length=50)
    third_party_id: int | None = None


class TransactionCreate(BaseModel):
    """A new draft transaction, optionally with its entries."""
    transaction_date: date
    description: str = Field(min_length=1, max_length=255)
    reference_type: str | None = Field(default=None, max_length=50)
    reference_id: int | None = None
    created_by: int | None = None
    entries: list[EntryCreate] = Field(default_factory=list)


# --- Response Schemas ---

class EntryResponse(BaseModel):
    id: int
    transaction_id: int
    account_id: int
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    third_party_type: str | None
    third_party_id: int | None

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: int
    scope_id: int
    transaction_number: str
    transaction_date: date
    status: TransactionStatus
    description: str
    reference_type: str | None
    reference_id: int | None
    total_debit: Decimal
    total_credit: Decimal
    posted_by: int | None
    posted_at: datetime | None
    entries: list[EntryResponse]

    model_config = {"from_attributes": True}

