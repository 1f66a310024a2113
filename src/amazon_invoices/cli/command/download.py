from __future__ import annotations

import random
from datetime import date

from rich.table import Table

from amazon_invoices.services.duplicate_detection_service import DuplicateDetectionService
from amazon_invoices.services.invoice_downloader import SampleInvoiceDownloader
from amazon_invoices.services.invoice_import_service import STATUS_ERROR, InvoiceImportService
from amazon_invoices.storage.invoice_repository import InvoiceRepository
from amazon_invoices.workspace import Workspace

from .util import console, fmt_amount, load_workspace_settings, open_database, print_import_results


def run(
    *,
    workspace: Workspace,
    start: date,
    end: date,
    actor: str,
    seed: int | None = None,
    write: bool = False,
) -> int:
    """Generate sample Amazon invoices for a date range and stage them.

    Dry-run shows the generated invoices and whether each would be a duplicate.
    """
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1

    downloader = SampleInvoiceDownloader(
        rng=random.Random(seed) if seed is not None else None,
        currency=settings.default_currency,
    )
    try:
        invoices = downloader.download_invoices(start, end)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 2

    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        if not write:
            duplicates = DuplicateDetectionService(InvoiceRepository(db))
            table = Table(title=f"Sample invoices {start} .. {end}", show_lines=False)
            table.add_column("Invoice", style="cyan", no_wrap=True)
            table.add_column("Order", style="blue", no_wrap=True)
            table.add_column("Date", style="white")
            table.add_column("Items", justify="right")
            table.add_column("Total", justify="right")
            table.add_column("Duplicate of", style="yellow")
            for invoice in invoices:
                match = duplicates.find_duplicate_invoice(invoice)
                table.add_row(
                    invoice.invoice_number,
                    invoice.order_number,
                    str(invoice.invoice_date),
                    str(invoice.item_count()),
                    fmt_amount(invoice.total_amount),
                    f"{match.invoice_number} ({match.criteria})" if match else "",
                )
            console.print(table)
            console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
            return 0

        importer = InvoiceImportService(db, settings)
        results = importer.import_invoices(invoices, actor=actor, source="amazon")
        print_import_results(results)
    return 0 if all(r.status != STATUS_ERROR for r in results) else 1
