"""
condo-ledger command line interface.

    condo-ledger reserve-fund appropriate [--month M] [--year Y] [--scope N]
                                          [--dry-run] [--force]
    condo-ledger reserve-fund history --scope N [--year Y]
    condo-ledger reserve-fund compliance --scope N --year Y
    condo-ledger chart seed --scope N
    condo-ledger chart list --scope N
    condo-ledger validate period --scope N --month M --year Y

Exit codes: 0 success, 1 when any scope failed, 2 for invalid
arguments (bad month, unknown scope).
"""

from decimal import Decimal
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from condo_ledger.config import get_settings
from condo_ledger.exceptions import (
    InvalidPeriodError,
    LedgerError,
    ScopeNotFoundError,
)
from condo_ledger.jobs.reserve_fund_job import run_monthly_appropriation
from condo_ledger.logging_config import configure_logging
from condo_ledger.models.base import SessionLocal
from condo_ledger.models.enums import AppropriationOutcome
from condo_ledger.schemas.chart import ChartAccountResponse
from condo_ledger.schemas.ledger import TransactionResponse
from condo_ledger.services.chart_service import ChartOfAccountsService
from condo_ledger.services.reserve_fund_service import ReserveFundService
from condo_ledger.services.validation_service import TransactionValidator

EXIT_INVALID_ARGUMENTS = 2

app = typer.Typer(
    name="condo-ledger",
    help="Double-entry ledger for residential properties.",
    no_args_is_help=True,
)
reserve_fund_app = typer.Typer(help="Reserve fund (Ley 675) operations.")
chart_app = typer.Typer(help="Chart of accounts.")
validate_app = typer.Typer(help="Ledger integrity checks.")
app.add_typer(reserve_fund_app, name="reserve-fund")
app.add_typer(chart_app, name="chart")
app.add_typer(validate_app, name="validate")

console = Console()

OUTCOME_STYLES = {
    AppropriationOutcome.CREATED: "green",
    AppropriationOutcome.SKIPPED_EXISTING: "yellow",
    AppropriationOutcome.SKIPPED_NO_INCOME: "yellow",
    AppropriationOutcome.DRY_RUN: "cyan",
    AppropriationOutcome.FAILED: "red",
}


@app.callback()
def main():
    configure_logging(get_settings().LOG_LEVEL)


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(EXIT_INVALID_ARGUMENTS)


# ==================== reserve-fund ====================

@reserve_fund_app.command("appropriate")
def appropriate(
    month: Optional[int] = typer.Option(
        None, "--month", help="Month to process (1-12). Defaults to the previous month."
    ),
    year: Optional[int] = typer.Option(
        None, "--year", help="Year to process. Defaults to the current year."
    ),
    scope: Optional[int] = typer.Option(
        None, "--scope", help="Process a single scope. Defaults to all."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Compute amounts without posting."
    ),
    force: bool = typer.Option(
        False, "--force", help="Appropriate even if the period already has one."
    ),
):
    """Appropriate the monthly reserve fund."""
    db = SessionLocal()
    try:
        summary = run_monthly_appropriation(
            db,
            scope_id=scope,
            month=month,
            year=year,
            force=force,
            dry_run=dry_run,
        )
    except (InvalidPeriodError, ScopeNotFoundError) as e:
        _fail(str(e))
    finally:
        db.close()

    table = Table(title=f"Reserve fund appropriation {summary.month}/{summary.year}")
    table.add_column("Scope", justify="right")
    table.add_column("Outcome")
    table.add_column("Income", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Transaction")
    table.add_column("Message")
    for result in summary.results:
        style = OUTCOME_STYLES[result.outcome]
        table.add_row(
            str(result.scope_id),
            f"[{style}]{result.outcome.value}[/{style}]",
            _money(result.monthly_income),
            _money(result.amount),
            result.transaction_number or "-",
            result.message,
        )
    console.print(table)
    console.print(
        f"created={summary.created_count} skipped={summary.skipped_count} "
        f"failed={summary.failed_count}"
    )
    if dry_run:
        console.print("[cyan]DRY-RUN: no transactions were posted[/cyan]")

    raise typer.Exit(summary.exit_code)


@reserve_fund_app.command("history")
def history(
    scope: int = typer.Option(..., "--scope"),
    year: Optional[int] = typer.Option(None, "--year"),
):
    """List the posted appropriations of a scope."""
    db = SessionLocal()
    try:
        service = ReserveFundService(
            db, scope, get_settings().reserve_fund_config()
        )
        rows = [
            TransactionResponse.model_validate(t)
            for t in service.get_appropriation_history(year)
        ]
        balance = service.get_reserve_fund_balance()
    finally:
        db.close()

    table = Table(title=f"Reserve fund appropriations, scope {scope}")
    table.add_column("Number")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    for row in rows:
        table.add_row(
            row.transaction_number,
            row.transaction_date.isoformat(),
            row.description,
            _money(row.total_debit),
        )
    console.print(table)
    console.print(f"Reserve fund balance: {_money(balance)}")


@reserve_fund_app.command("compliance")
def compliance(
    scope: int = typer.Option(..., "--scope"),
    year: int = typer.Option(..., "--year"),
):
    """Compare a year's appropriations with the legal minimum."""
    db = SessionLocal()
    try:
        report = ReserveFundService(
            db, scope, get_settings().reserve_fund_config()
        ).validate_legal_compliance(year)
    finally:
        db.close()

    table = Table(title=f"Reserve fund compliance {year}, scope {scope}")
    table.add_column("Month", justify="right")
    table.add_column("Income", justify="right")
    table.add_column("Appropriated", justify="right")
    for row in report.months:
        table.add_row(str(row.month), _money(row.income), _money(row.appropriated))
    console.print(table)

    status = "[green]COMPLIANT[/green]" if report.is_compliant else "[red]NOT COMPLIANT[/red]"
    console.print(
        f"{status} {report.compliance_percentage}% appropriated "
        f"(minimum {report.minimum_percentage}%, deficit {_money(report.deficit)})"
    )
    if not report.is_compliant:
        raise typer.Exit(1)


# ==================== chart ====================

@chart_app.command("seed")
def seed(scope: int = typer.Option(..., "--scope")):
    """Create the default chart of accounts for a scope."""
    db = SessionLocal()
    try:
        created = ChartOfAccountsService(db).seed_default_chart(scope)
        db.commit()
        console.print(f"Seeded {len(created)} accounts for scope {scope}")
    except LedgerError as e:
        db.rollback()
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()


@chart_app.command("list")
def list_accounts(scope: int = typer.Option(..., "--scope")):
    """Print the chart of accounts of a scope as a tree."""
    db = SessionLocal()
    try:
        roots = ChartOfAccountsService(db).build_tree(scope)
        if not roots:
            _fail(str(ScopeNotFoundError(scope)))

        tree = Tree(f"Chart of accounts, scope {scope}")

        def add(branch: Tree, node: dict) -> None:
            account = ChartAccountResponse.model_validate(node["account"])
            label = f"{account.code} {account.name}"
            if not account.accepts_posting:
                label = f"[bold]{label}[/bold]"
            child = branch.add(label)
            for sub in node["children"]:
                add(child, sub)

        for root in roots:
            add(tree, root)
        console.print(tree)
    finally:
        db.close()


# ==================== validate ====================

@validate_app.command("period")
def validate_period(
    scope: int = typer.Option(..., "--scope"),
    month: int = typer.Option(..., "--month"),
    year: int = typer.Option(..., "--year"),
):
    """Validate the posted transactions of a period."""
    if not 1 <= month <= 12:
        _fail(str(InvalidPeriodError(month, year)))

    db = SessionLocal()
    try:
        validator = TransactionValidator(
            db, config=get_settings().reserve_fund_config()
        )
        result = validator.validate_period_integrity(scope, month, year)
    finally:
        db.close()

    balance = result.period_checks.balance_check
    console.print(
        f"Period {result.period}: {result.total_transactions} transactions, "
        f"{result.invalid_transactions} invalid, "
        f"{result.total_warnings} warnings"
    )
    console.print(
        f"Balance: debits {_money(balance.total_debits)} "
        f"credits {_money(balance.total_credits)} ({balance.status})"
    )
    for detail in result.details:
        for error in detail.validation.errors:
            console.print(f"[red]{detail.transaction_number}: {error}[/red]")
        for warning in detail.validation.warnings:
            console.print(f"[yellow]{detail.transaction_number}: {warning}[/yellow]")
    for issue in result.period_checks.account_consistency_check.inconsistencies:
        console.print(f"[yellow]{issue}[/yellow]")

    reserve = result.period_checks.reserve_fund_check
    if reserve is not None:
        console.print(
            f"Reserve fund: {reserve.compliance_percentage}% of operating income"
        )

    if result.invalid_transactions or not balance.is_balanced:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
