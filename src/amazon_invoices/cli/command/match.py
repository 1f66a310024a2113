from __future__ import annotations

from typing import Optional

from rich.table import Table

from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings, open_database


def run(
    *,
    workspace: Workspace,
    invoice_id: int,
    actor: str,
    item_id: Optional[int] = None,
    stock_id: Optional[str] = None,
    write: bool = False,
) -> int:
    """Match an invoice's items to stock records.

    Modes:
    - Auto: run the matching rules over every unmatched item.
    - Manual: --item and --stock match one item and learn ASIN/SKU rules from it.
    """
    if (item_id is None) != (stock_id is None):
        console.print("[red]Error:[/red] --item and --stock must be given together.")
        return 2

    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        importer = InvoiceImportService(db, settings)
        invoice = importer.repository.find_by_id(invoice_id)
        if invoice is None:
            console.print(f"[red]Error:[/red] Invoice not found: {invoice_id}")
            return 1

        if item_id is not None:
            item = next((i for i in invoice.items if i.id == item_id), None)
            if item is None:
                console.print(f"[red]Error:[/red] Item {item_id} is not on invoice {invoice.invoice_number}")
                return 1
            if importer.matcher.catalog.get(stock_id) is None:
                console.print(f"[yellow]Warning:[/yellow] Stock ID {stock_id} is not in the stock catalog")
            console.print(f"[cyan]Will match[/] '{item.product_name}' to stock ID [bold]{stock_id}[/]")
            if not write:
                console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
                return 0
            importer.matcher.match_item(item_id, stock_id, actor=actor)
            importer.auto_match(invoice_id, actor=actor)
            console.print("[green]Item matched.[/]")
            return 0

        unmatched = [i for i in invoice.items if not i.fa_item_matched]
        if not unmatched:
            console.print("[green]All items already matched[/]")
            return 0

        table = Table(title=f"Rule matches for {invoice.invoice_number}", show_lines=False)
        table.add_column("ID", justify="right", style="dim")
        table.add_column("Product", style="white")
        table.add_column("ASIN", style="blue")
        table.add_column("Stock", style="green")
        hits = 0
        for item in unmatched:
            stock = importer.matcher.find_matching_stock_item(item.asin, item.sku, item.product_name)
            hits += 1 if stock else 0
            table.add_row(str(item.id), item.product_name[:50], item.asin or "", stock or "[dim]none[/dim]")
        console.print(table)

        if not write:
            console.print(f"{hits} of {len(unmatched)} unmatched item(s) would be matched")
            console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
            return 0

        matched = importer.auto_match(invoice_id, actor=actor)
        status = importer.repository.find_by_id(invoice_id).status.value

    console.print(f"[green]Matched {matched} item(s).[/] Invoice status: {status}")
    return 0
