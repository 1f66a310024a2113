from __future__ import annotations

from typing import Optional

from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings, open_database


def run(
    *,
    workspace: Workspace,
    invoice_id: int,
    actor: str,
    notes: Optional[str] = None,
    fa_trans_no: Optional[int] = None,
    write: bool = False,
) -> int:
    """Mark a staged invoice as completed once it has been posted to FrontAccounting."""
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

        problems = importer.validate_invoice_data(invoice_id)
        for problem in problems:
            console.print(f"[yellow]Warning:[/yellow] {problem}")

        target = f" (FA transaction {fa_trans_no})" if fa_trans_no is not None else ""
        console.print(
            f"[cyan]Will mark[/] {invoice.invoice_number} [bold]{invoice.status.value}[/] -> completed{target}"
        )
        if not write:
            console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
            return 0

        importer.mark_invoice_as_processed(
            invoice_id, actor=actor, notes=notes, fa_trans_no=fa_trans_no
        )

    console.print("[green]Invoice marked as processed.[/]")
    return 0
