import typer
from pathlib import Path
from typing import Optional
from datetime import date
from decimal import Decimal

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from finance_tracker.config.settings import ConfigLoader
from finance_tracker.database.connection import DatabaseConfig, DatabaseManager
from finance_tracker.domain.enums import TransactionType
from finance_tracker.logging_setup import configure_logging, get_logger
from finance_tracker.services.backup import BackupFormat, BackupPeriod, BackupService, BackupType
from finance_tracker.services.categories import CategoryService
from finance_tracker.services.preferences import PreferencesService
from finance_tracker.services.reports import ReportService
from finance_tracker.services.validation import TransactionInputError, validate_entry
from finance_tracker.storage.sqlite_storage import SQLiteKeyValueStorage
from finance_tracker.store.transaction_store import TransactionStore

app = typer.Typer(
    name="finance-tracker",
    help="Track personal income and expenses",
    add_completion=False,
)
categories_app = typer.Typer(help="Manage the category list")
config_app = typer.Typer(help="Show or change preferences")
app.add_typer(categories_app, name="categories")
app.add_typer(config_app, name="config")

console = Console()
logger = get_logger(__name__)

PERIODS = ("current-month", "previous-month", "current-year", "all")

class State:
    """The provider scope: one store and its services for the whole process"""
    verbose: bool = False
    store: Optional[TransactionStore] = None
    categories: Optional[CategoryService] = None
    preferences: Optional[PreferencesService] = None


state = State()

@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Path to the SQLite database (overrides settings)",
    ),
):
    """
    Finance Tracker - Record income and expenses and see where the money goes.
    """
    configure_logging("DEBUG" if verbose else None)
    state.verbose = verbose

    if state.store is None:
        settings = ConfigLoader.load_settings()
        keys = settings["storage_keys"]
        db_manager = DatabaseManager(DatabaseConfig(db or settings["database"]["path"]))
        storage = SQLiteKeyValueStorage(db_manager)

        state.store = TransactionStore(storage, storage_key=keys["transactions"])
        state.categories = CategoryService(
            storage,
            storage_key=keys["categories"],
            defaults=settings["default_categories"],
        )
        state.preferences = PreferencesService(
            storage,
            storage_key=keys["config"],
            defaults=settings["default_preferences"],
        )
        logger.debug("Loaded %d transactions", len(state.store))

def _fail(e: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {e}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)

def _money(amount: Decimal) -> str:
    currency = state.preferences.get().currency
    return f"{amount:,.2f} {currency}"

def _signed_money(amount: Decimal) -> str:
    color = "green" if amount >= 0 else "red"
    sign = "+" if amount >= 0 else "-"
    return f"[{color}]{sign}{_money(abs(amount))}[/{color}]"

def _parse_day(value: Optional[str], option: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got '{value}'", param_hint=option)

@app.command(name="add")
def add_transaction(
    transaction_type: TransactionType = typer.Option(
        ...,
        "--type", "-t",
        help="income or expense",
        case_sensitive=False,
    ),
    amount: str = typer.Option(..., "--amount", "-a", help="Amount (non-negative)"),
    category: str = typer.Option(..., "--category", "-c", help="Category name"),
    date_str: Optional[str] = typer.Option(
        None,
        "--date", "-d",
        help="Date as YYYY-MM-DD (defaults to today)",
    ),
    note: Optional[str] = typer.Option(None, "--note", "-n", help="Free text note"),
):
    """
    Record a new income or expense.

    Examples:
        finance-tracker add -t expense -a 12.50 -c food
        finance-tracker add -t income -a 2000 -c salary -d 2025-05-01 -n "May payroll"
    """
    try:
        transaction = validate_entry(
            transaction_type,
            amount,
            category,
            date_str or date.today().isoformat(),
            note=note,
        )
        if transaction.category not in state.categories:
            console.print(
                f"[yellow]Category '{transaction.category}' is not in your category list[/yellow]"
            )
        txn_id = state.store.add(transaction)
        console.print(f"[bold green]✓ Added {transaction.type.value}[/bold green] [dim]{txn_id}[/dim]")
    except TransactionInputError as e:
        _fail(e)

@app.command(name="list")
def list_transactions(
    period: str = typer.Option(
        "current-month",
        "--period", "-p",
        help=f"One of: {', '.join(PERIODS)}",
    ),
):
    """
    List transactions, newest first.

    Examples:
        finance-tracker list
        finance-tracker list --period previous-month
    """
    if period not in PERIODS:
        _fail(ValueError(f"Unknown period '{period}'. Available: {', '.join(PERIODS)}"))

    store = state.store
    selected = {
        "current-month": store.current_month_transactions,
        "previous-month": store.previous_month_transactions,
        "current-year": store.current_year_transactions,
        "all": store.transactions,
    }[period]

    if not selected:
        console.print(Panel(
            "[yellow]No transactions found for this period[/yellow]",
            title="Empty",
            border_style="yellow"
        ))
        return

    txn_table = Table(show_header=True, padding=(0, 1))
    txn_table.add_column("Date", style="cyan", width=12)
    txn_table.add_column("Category", style="magenta")
    txn_table.add_column("Note", style="white", max_width=40)
    txn_table.add_column("Amount", justify="right")
    txn_table.add_column("ID", style="dim")

    for txn in selected:
        txn_table.add_row(
            txn.date,
            txn.category,
            txn.note or "",
            _signed_money(txn.signed_amount),
            txn.id,
        )

    console.print(txn_table)
    console.print(f"\n[dim]{len(selected)} transactions[/dim]")

@app.command(name="edit")
def edit_transaction(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    transaction_type: Optional[TransactionType] = typer.Option(
        None, "--type", "-t", help="income or expense", case_sensitive=False
    ),
    amount: Optional[str] = typer.Option(None, "--amount", "-a", help="New amount"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="New category"),
    date_str: Optional[str] = typer.Option(None, "--date", "-d", help="New date (YYYY-MM-DD)"),
    note: Optional[str] = typer.Option(None, "--note", "-n", help="New note"),
):
    """
    Change fields of an existing transaction. The ID never changes.
    """
    try:
        current = state.store.get(transaction_id)
        if current is None:
            raise ValueError(f"Transaction with ID {transaction_id} not found")

        # Re-validate the merged entry so edits follow the same rules as new entries
        merged = validate_entry(
            transaction_type or current.type,
            amount if amount is not None else current.amount,
            category or current.category,
            date_str or current.date,
            note=note if note is not None else current.note,
        )
        changes = {
            "type": merged.type,
            "amount": merged.amount,
            "category": merged.category,
            "date": merged.date,
            "note": merged.note,
        }
        state.store.update(transaction_id, **changes)
        console.print(f"[bold green]✓ Updated[/bold green] [dim]{transaction_id}[/dim]")
    except ValueError as e:
        _fail(e)

@app.command(name="remove")
def remove_transaction(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a transaction."""
    if not yes:
        typer.confirm(f"Delete transaction {transaction_id}?", abort=True)

    removed = state.store.remove(transaction_id)
    if removed:
        console.print(f"[bold green]✓ Deleted {removed} transaction(s)[/bold green]")
    else:
        console.print(f"[yellow]No transaction with ID {transaction_id}[/yellow]")

@app.command(name="clear")
def clear_transactions(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every transaction and the stored collection."""
    if not yes:
        typer.confirm("Delete ALL transactions?", abort=True)
    state.store.clear()
    console.print("[bold green]✓ All transactions deleted[/bold green]")

@app.command(name="dashboard")
def dashboard():
    """
    Overall totals and this month's running balance.
    """
    summary = ReportService(state.store).dashboard()

    summary_text = (
        f"[green]💰 Income:[/green]    {_money(summary.income_total):>18}\n"
        f"[red]💸 Expenses:[/red]  {_money(summary.expense_total):>18}\n"
        f"{'─' * 32}\n"
    )
    if summary.balance >= 0:
        summary_text += f"[bold green]📈 Balance:[/bold green]   {_money(summary.balance):>18}"
    else:
        summary_text += f"[bold red]📉 Balance:[/bold red]   {_money(summary.balance):>18}"

    console.print(Panel(
        summary_text,
        title=f"[bold]{summary.month_label}[/bold]",
        border_style="cyan",
        padding=(1, 2)
    ))

    if not summary.daily_balances:
        console.print("[dim]No transactions this month[/dim]")
        return

    if summary.expenses_by_category:
        console.print(f"\n[bold]Top Spending Categories[/bold]")
        category_table = Table(show_header=True, box=None, padding=(0, 2))
        category_table.add_column("Category", style="cyan", no_wrap=True)
        category_table.add_column("Amount", justify="right", style="red")
        for category, amount in summary.top_spending_categories[:10]:
            category_table.add_row(category, _money(amount))
        console.print(category_table)

    console.print(f"\n[bold]Daily Balance[/bold]")
    daily_table = Table(show_header=True, box=None, padding=(0, 2))
    daily_table.add_column("Day", style="cyan", justify="right")
    daily_table.add_column("Balance", justify="right")
    for point in summary.daily_balances:
        daily_table.add_row(str(point.day), _signed_money(point.balance))
    console.print(daily_table)

@app.command(name="stats")
def statistics():
    """
    Month over month comparison.
    """
    stats = ReportService(state.store).statistics()

    def change(value: Decimal, meaningful: bool) -> str:
        if not meaningful:
            return "[dim]n/a (nothing last month)[/dim]"
        sign = "+" if value >= 0 else ""
        return f"{sign}{value:.2f}%"

    lines = [
        f"[bold]Total balance:[/bold] {_signed_money(stats.total_balance)}",
        "",
        f"{stats.current_month_label}: {_signed_money(stats.current_month_balance)}",
        f"{stats.previous_month_label}: {_signed_money(stats.previous_month_balance)}",
        "",
        f"Income vs {stats.previous_month_label}:   {change(stats.income_percentage_change, stats.has_income_last_month)}",
        f"Expenses vs {stats.previous_month_label}: {change(stats.expense_percentage_change, stats.has_expense_last_month)}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Statistics[/bold]", border_style="cyan"))

@app.command(name="export")
def export(
    fmt: str = typer.Option("csv", "--format", "-f", help="csv or json"),
    backup_type: str = typer.Option("all", "--type", "-t", help="all, incomes or expenses"),
    period: str = typer.Option(
        "all_time",
        "--period", "-p",
        help="all_time, last_week, last_month, last_year or custom",
    ),
    start: Optional[str] = typer.Option(None, "--start", help="Custom period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Custom period end (YYYY-MM-DD)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination file"),
):
    """
    Export a filtered backup without transaction IDs.

    Examples:
        finance-tracker export
        finance-tracker export -f json -t expenses -p last_month
        finance-tracker export -p custom --start 2025-01-01 --end 2025-03-31
    """
    try:
        backup_format = BackupFormat(fmt)
        result = BackupService(state.store).export(
            backup_format,
            output or Path(f"transactions.{backup_format.value}"),
            backup_type=BackupType(backup_type),
            period=BackupPeriod(period),
            start=_parse_day(start, "--start"),
            end=_parse_day(end, "--end"),
        )
    except ValueError as e:
        _fail(e)

    if result.success:
        console.print(f"[bold green]✓ {result}[/bold green]")
    else:
        console.print(f"[yellow]{result}[/yellow]")

@app.command(name="dump")
def dump(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination file (stdout if omitted)"),
):
    """Write the full collection, IDs included, as JSON (re-importable)."""
    content = state.store.export_json()
    if output is None:
        typer.echo(content)
        return
    output.write_text(content, encoding="utf-8")
    console.print(f"[bold green]✓ Wrote {len(state.store)} transactions to {output}[/bold green]")

@app.command(name="import")
def import_transactions(
    filepath: Path = typer.Argument(
        ...,
        help="JSON file produced by 'dump'",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
):
    """
    Replace all transactions with the contents of a JSON dump.

    The import is all or nothing: one malformed entry rejects the whole file.
    """
    if not state.store.import_json(filepath.read_text(encoding="utf-8")):
        _fail(ValueError(f"{filepath} is not a valid transaction dump; nothing imported"))
    console.print(f"[bold green]✓ Imported {len(state.store)} transactions[/bold green]")

@categories_app.command(name="list")
def list_categories():
    """Show the category list."""
    for name in state.categories.list():
        console.print(f"• {name}")

@categories_app.command(name="add")
def add_category(name: str = typer.Argument(..., help="Category name")):
    """Add a category."""
    if not state.categories.add(name):
        _fail(ValueError(f"Category '{name.strip()}' is empty or already exists"))
    console.print(f"[bold green]✓ Added category {name.strip()}[/bold green]")

@categories_app.command(name="remove")
def remove_category(
    name: str = typer.Argument(..., help="Category name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Remove a category. Existing transactions keep their category."""
    if not yes:
        typer.confirm(f"Delete category '{name}'?", abort=True)
    if not state.categories.remove(name):
        _fail(ValueError(f"Category '{name}' not found"))
    console.print(f"[bold green]✓ Removed category {name}[/bold green]")

@config_app.command(name="show")
def show_config():
    """Show preferences."""
    prefs = state.preferences.get()
    console.print(f"currency: {prefs.currency}")
    console.print(f"language: {prefs.language}")

@config_app.command(name="set")
def set_config(
    currency: Optional[str] = typer.Option(None, "--currency", help="Display currency code"),
    language: Optional[str] = typer.Option(None, "--language", help="Language code"),
):
    """Change preferences."""
    changes = {k: v for k, v in {"currency": currency, "language": language}.items() if v}
    if not changes:
        _fail(ValueError("Nothing to change; pass --currency and/or --language"))
    prefs = state.preferences.update(**changes)
    console.print(f"[bold green]✓ currency={prefs.currency} language={prefs.language}[/bold green]")


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
