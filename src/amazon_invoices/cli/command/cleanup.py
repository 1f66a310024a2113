from __future__ import annotations

from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings, open_database


def run(*, workspace: Workspace, days: int | None = None, write: bool = False) -> int:
    """Delete processing log and processed-source rows older than N days.

    Defaults to max_file_age_days from settings. Staged invoices are never removed.
    """
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    days = days if days is not None else settings.max_file_age_days

    console.print(f"[cyan]Will remove[/] log entries and processed-source records older than {days} days")
    if not write:
        console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
        return 0

    db = open_database(workspace, settings)
    if db is None:
        return 1
    with db:
        removed = InvoiceImportService(db, settings).cleanup_old_records(days)

    console.print(
        f"[green]Cleanup completed.[/] Removed {removed['log_entries']} log entries "
        f"and {removed['processed_sources']} processed-source records."
    )
    return 0
