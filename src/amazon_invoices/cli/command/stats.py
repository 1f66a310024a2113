from __future__ import annotations

from rich.table import Table

from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings, open_database


def _source_table(title: str, stats: dict) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total", str(stats["total"]))
    table.add_row("Processed", str(stats["processed"]))
    table.add_row("Duplicates", str(stats["duplicates"]))
    table.add_row("No invoice data", str(stats["no_invoice_data"]))
    table.add_row("Failed", str(stats["failed"]))
    table.add_row("Success rate", f"{stats['success_rate']}%")
    return table


def run(*, workspace: Workspace, days: int = 30, recent: int = 10) -> int:
    """Show import and processing statistics for the last N days."""
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        importer = InvoiceImportService(db, settings)
        stats = importer.get_processing_statistics(days)
        activity = importer.get_recent_activity(recent) if recent > 0 else []

    console.print(f"[bold cyan]Last {stats['period_days']} days[/]  ({stats['imports']} import(s))\n")

    processing = stats["invoice_processing"]
    table = Table(title="Invoices", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total", str(processing["total_invoices"]))
    table.add_row("Pending", str(processing["pending_invoices"]))
    table.add_row("Matched", str(processing["matched_invoices"]))
    table.add_row("Completed", str(processing["completed_invoices"]))
    table.add_row("Error", str(processing["error_invoices"]))
    table.add_row("Completion rate", f"{processing['success_rate']}%")
    console.print(table)
    console.print(_source_table("PDF imports", stats["pdf_import"]))
    console.print(_source_table("E-mail imports", stats["email_import"]))

    if activity:
        console.print("\n[bold]Recent activity[/]")
        for entry in activity:
            invoice = entry["staging_invoice_id"]
            console.print(
                f"[dim]{entry['created_at']}[/dim] #{invoice if invoice is not None else '-'} "
                f"{entry['action']} [dim]({entry['user_id']})[/dim]"
            )
    return 0
