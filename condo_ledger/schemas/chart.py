"""
Pydantic schemas for chart of accounts operations.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from condo_ledger.models.enums import AccountType, AccountNature


class ChartAccountCreate(BaseModel):
    """
    Request to create an account.

    Type, nature, level and parent are derived from the code
    when they are not given.
    """
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=150)
    description: str | None = Field(default=None, max_length=255)
    account_type: AccountType | None = None
    nature: AccountNature | None = None
    level: int | None = Field(default=None, ge=1)
    parent_code: str | None = None
    accepts_posting: bool = True
    requires_third_party: bool = False

    @field_validator("code")
    @classmethod
    def code_must_be_numeric(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError("account code must contain only digits")
        return v


class ChartAccountResponse(BaseModel):
    id: int
    scope_id: int
    code: str
    name: str
    account_type: AccountType
    nature: AccountNature
    level: int
    parent_id: int | None
    accepts_posting: bool
    requires_third_party: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
