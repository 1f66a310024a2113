from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.text import Text

from amazon_invoices.model.settings import Settings
from amazon_invoices.model.settings_io import load_settings
from amazon_invoices.services.invoice_import_service import ImportResult
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.schema import tables_exist
from amazon_invoices.workspace import Workspace

console = Console()

STATUS_STYLES = {
    "success": "green",
    "duplicate": "yellow",
    "duplicate_invoice": "yellow",
    "no_invoice_data": "dim",
    "error": "red",
}


def fmt_amount(amt: float) -> Text:
    s = f"{amt:,.2f}"
    if amt < 0:
        return Text(s, style="bold red")
    elif amt > 0:
        return Text(s, style="bold green")
    return Text(s)


def load_workspace_settings(workspace: Workspace) -> Optional[Settings]:
    """Read config/settings.yml, printing the problem and returning None on failure."""
    try:
        return load_settings(workspace.settings_path)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return None


def open_database(workspace: Workspace, settings: Settings) -> Optional[SqliteGateway]:
    """Open the staging database of an initialized workspace.

    Prints an error and returns None when the database or its tables are missing.
    """
    if not workspace.database_path.exists():
        console.print(
            f"[red]Error:[/red] No staging database at {workspace.database_path}. "
            "Run 'amazon-invoices init' first."
        )
        return None
    db = SqliteGateway(workspace.database_path, settings.table_prefix)
    if not tables_exist(db):
        db.close()
        console.print(
            f"[red]Error:[/red] Staging tables with prefix '{settings.table_prefix}' are missing. "
            "Run 'amazon-invoices init' first."
        )
        return None
    return db


def print_import_results(results: list[ImportResult]) -> None:
    if not results:
        console.print("[yellow]Nothing to import[/yellow]")
        return
    for result in results:
        style = STATUS_STYLES.get(result.status, "white")
        label = result.invoice_number or result.source or ""
        line = f"[{style}]{result.status}[/{style}] {label}: {result.message}"
        if result.error:
            line += f" ({result.error})"
        console.print(line)
        for warning in result.warnings:
            console.print(f"  [yellow]warning:[/yellow] {warning}")
    imported = sum(1 for r in results if r.success)
    console.print(f"\n[bold]Imported {imported} of {len(results)}[/bold]")


__all__ = [
    "console",
    "fmt_amount",
    "load_workspace_settings",
    "open_database",
    "print_import_results",
]
