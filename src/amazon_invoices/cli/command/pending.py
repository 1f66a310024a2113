from __future__ import annotations

from rich.table import Table

from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.workspace import Workspace

from .util import console, fmt_amount, load_workspace_settings, open_database


def run(*, workspace: Workspace, limit: int = 50) -> int:
    """List staged invoices awaiting review, newest first."""
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        rows = InvoiceImportService(db, settings).get_pending_invoices(limit)

    if not rows:
        console.print("[green]No pending invoices[/]")
        return 0

    table = Table(title="Pending invoices", show_lines=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Invoice", style="cyan", no_wrap=True)
    table.add_column("Order", style="blue", no_wrap=True)
    table.add_column("Date", style="white")
    table.add_column("Items", justify="right")
    table.add_column("Items total", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Cur", style="dim")
    for row in rows:
        table.add_row(
            str(row["id"]),
            row["invoice_number"],
            row["order_number"],
            str(row["invoice_date"]),
            str(row["item_count"]),
            fmt_amount(float(row["items_total"])),
            fmt_amount(float(row["invoice_total"])),
            row["currency"],
        )
    console.print(table)
    console.print(f"{len(rows)} pending invoice(s)")
    return 0
