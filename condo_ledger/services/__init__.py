"""Business logic services."""

from condo_ledger.services.chart_service import ChartOfAccountsService
from condo_ledger.services.compliance_service import ComplianceReporter
from condo_ledger.services.ledger_service import LedgerService
from condo_ledger.services.reserve_fund_service import ReserveFundService
from condo_ledger.services.validation_service import TransactionValidator

__all__ = [
    "ChartOfAccountsService",
    "ComplianceReporter",
    "LedgerService",
    "ReserveFundService",
    "TransactionValidator",
]
