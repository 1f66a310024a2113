from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from rich.table import Table

from amazon_invoices.services.invoice_import_service import (
    STATUS_DUPLICATE,
    STATUS_DUPLICATE_INVOICE,
    STATUS_ERROR,
    STATUS_SUCCESS,
    ImportResult,
    InvoiceImportService,
)
from amazon_invoices.services.pdf_ocr_processor import PdfOcrProcessor, file_hash, scan_pdf_files
from amazon_invoices.services.tesseract_engine import TesseractOcrEngine
from amazon_invoices.storage.processing_log import SOURCE_PDF, ProcessingLog
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings, open_database, print_import_results

_ARCHIVABLE = (STATUS_SUCCESS, STATUS_DUPLICATE, STATUS_DUPLICATE_INVOICE)


def _archive(results: list[ImportResult], archive_dir: Path) -> int:
    """Move PDFs that need no further attention into archive_dir."""
    moved = 0
    for result in results:
        if result.status not in _ARCHIVABLE or not result.source:
            continue
        source = Path(result.source)
        if not source.exists():
            continue
        archive_dir.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(archive_dir / source.name))
        moved += 1
    return moved


def run(
    *,
    workspace: Workspace,
    directory: Optional[Path] = None,
    actor: str,
    archive: bool = False,
    write: bool = False,
) -> int:
    """Import every PDF in a directory (default: the workspace inbox).

    Dry-run lists the PDFs and whether each was already processed.
    """
    directory = directory or workspace.inbox_dir
    if not directory.is_dir():
        console.print(f"[red]Error:[/red] Directory not found: {directory}")
        return 1

    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        pdfs = scan_pdf_files(directory)
        if not write:
            log = ProcessingLog(db)
            table = Table(title=f"PDFs in {directory}", show_lines=False)
            table.add_column("File", style="cyan")
            table.add_column("Size", justify="right")
            table.add_column("State")
            for pdf in pdfs:
                seen = log.is_source_processed(SOURCE_PDF, file_hash(pdf))
                table.add_row(
                    pdf.name,
                    f"{pdf.stat().st_size:,}",
                    "[dim]already processed[/dim]" if seen else "[green]new[/green]",
                )
            console.print(table)
            console.print(f"Found {len(pdfs)} PDF file(s)")
            console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
            return 0

        engine = TesseractOcrEngine(settings.ocr)
        processor = PdfOcrProcessor(
            engine, InvoiceImportService(db, settings), settings.ocr.min_confidence
        )
        try:
            results = processor.process_files(pdfs, actor=actor)
        finally:
            engine.cleanup()

    print_import_results(results)
    if archive:
        moved = _archive(results, workspace.archive_dir)
        console.print(f"Archived {moved} file(s) to {workspace.archive_dir}")
    return 0 if all(r.status != STATUS_ERROR for r in results) else 1
