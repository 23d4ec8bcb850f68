"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file into environment variables
load_dotenv()


class ReserveFundConfig(BaseModel):
    """
    Parameters of the reserve fund appropriation.

    Passed explicitly to the reserve fund engine. The defaults
    follow the horizontal property law: 30% of operating income.
    """
    percentage: Decimal = Field(default=Decimal("30"), ge=0, le=100)
    minimum_percentage: Decimal = Field(default=Decimal("30"), ge=0, le=100)
    expense_account_code: str = "530502"
    fund_account_code: str = "320501"
    income_account_prefixes: tuple[str, ...] = ("41",)
    system_actor_id: int = 0

    model_config = {"frozen": True}


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Condo Ledger"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/condo_ledger"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Reserve fund
    RESERVE_FUND_PERCENTAGE: str = os.getenv("RESERVE_FUND_PERCENTAGE", "30")
    RESERVE_FUND_MINIMUM_PERCENTAGE: str = os.getenv(
        "RESERVE_FUND_MINIMUM_PERCENTAGE", "30"
    )
    RESERVE_EXPENSE_ACCOUNT_CODE: str = os.getenv(
        "RESERVE_EXPENSE_ACCOUNT_CODE", "530502"
    )
    RESERVE_FUND_ACCOUNT_CODE: str = os.getenv(
        "RESERVE_FUND_ACCOUNT_CODE", "320501"
    )
    # Comma separated code prefixes of the operating income accounts
    OPERATING_INCOME_PREFIXES: str = os.getenv("OPERATING_INCOME_PREFIXES", "41")
    SYSTEM_ACTOR_ID: int = int(os.getenv("SYSTEM_ACTOR_ID", "0"))

    def reserve_fund_config(self) -> ReserveFundConfig:
        """Build the reserve fund configuration from these settings."""
        prefixes = tuple(
            p.strip() for p in self.OPERATING_INCOME_PREFIXES.split(",")
            if p.strip()
        )
        return ReserveFundConfig(
            percentage=Decimal(self.RESERVE_FUND_PERCENTAGE),
            minimum_percentage=Decimal(self.RESERVE_FUND_MINIMUM_PERCENTAGE),
            expense_account_code=self.RESERVE_EXPENSE_ACCOUNT_CODE,
            fund_account_code=self.RESERVE_FUND_ACCOUNT_CODE,
            income_account_prefixes=prefixes,
            system_actor_id=self.SYSTEM_ACTOR_ID,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
