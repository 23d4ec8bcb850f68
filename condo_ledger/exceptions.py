"""
Typed exceptions for the ledger core.

Every exception carries a machine-readable ``code`` and the
structured data needed to report it, so callers catch by type
instead of parsing messages.

    LedgerError
    +-- InvalidEntryError
    +-- UnbalancedTransactionError
    +-- ValidationFailedError
    +-- InvalidPeriodError
    +-- AlreadyPostedError
    +-- TransactionNotDraftError
    +-- TransactionNotPostedError
    +-- AccountNotFoundError
    +-- AccountNotPostableError
    +-- DuplicateAccountError
    +-- TransactionNotFoundError
    +-- ScopeNotFoundError
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger core errors."""

    code: str = "LEDGER_ERROR"


# --- Validation failures ---

class InvalidEntryError(LedgerError):
    """An entry must carry exactly one positive amount."""

    code: str = "INVALID_ENTRY"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid entry: {reason}")


class UnbalancedTransactionError(LedgerError):
    """Debits do not equal credits (double-entry violated)."""

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Transaction does not satisfy double-entry: "
            f"debits={total_debit}, credits={total_credit}"
        )


class ValidationFailedError(LedgerError):
    """Integrity validation reported errors at posting time."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, transaction_number: str, result):
        self.transaction_number = transaction_number
        self.result = result
        super().__init__(
            f"Transaction {transaction_number} failed integrity "
            f"validation: {'; '.join(result.errors)}"
        )


class InvalidPeriodError(LedgerError):
    code: str = "INVALID_PERIOD"

    def __init__(self, month, year=None):
        self.month = month
        self.year = year
        super().__init__(f"Invalid month: {month}. Must be between 1 and 12.")


# --- State errors ---

class AlreadyPostedError(LedgerError):
    """The transaction has already been posted."""

    code: str = "ALREADY_POSTED"

    def __init__(self, transaction_number: str):
        self.transaction_number = transaction_number
        super().__init__(f"Transaction {transaction_number} is already posted")


class TransactionNotDraftError(LedgerError):
    """Only draft transactions can be modified, posted or voided."""

    code: str = "TRANSACTION_NOT_DRAFT"

    def __init__(self, transaction_number: str, status: str):
        self.transaction_number = transaction_number
        self.status = status
        super().__init__(
            f"Transaction {transaction_number} is {status}, not draft"
        )


class TransactionNotPostedError(LedgerError):
    """Only posted transactions can be reversed."""

    code: str = "TRANSACTION_NOT_POSTED"

    def __init__(self, transaction_number: str, status: str):
        self.transaction_number = transaction_number
        self.status = status
        super().__init__(
            f"Can only reverse posted transactions "
            f"({transaction_number} is {status})"
        )


# --- Configuration failures ---

class AccountNotFoundError(LedgerError):
    """A required chart of accounts entry is missing."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, code: str, scope_id: int | None = None, hint: str = ""):
        self.account_code = code
        self.scope_id = scope_id
        message = f"Account {code} not found"
        if scope_id is not None:
            message += f" for scope {scope_id}"
        if hint:
            message += f". {hint}"
        super().__init__(message)


class AccountNotPostableError(LedgerError):
    """Account is a summary account or retired."""

    code: str = "ACCOUNT_NOT_POSTABLE"

    def __init__(self, code: str, reason: str):
        self.account_code = code
        self.reason = reason
        super().__init__(f"Account {code} cannot receive entries: {reason}")


class DuplicateAccountError(LedgerError):
    code: str = "DUPLICATE_ACCOUNT"

    def __init__(self, code: str, scope_id: int):
        self.account_code = code
        self.scope_id = scope_id
        super().__init__(
            f"Account with code '{code}' already exists for scope {scope_id}"
        )


# --- Not found ---

class TransactionNotFoundError(LedgerError):
    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class ScopeNotFoundError(LedgerError):
    code: str = "SCOPE_NOT_FOUND"

    def __init__(self, scope_id):
        self.scope_id = scope_id
        super().__init__(f"Scope {scope_id} not found")
