from __future__ import annotations

from pathlib import Path

from rich.table import Table

from amazon_invoices.services.errors import ExtractionError
from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.services.pdf_ocr_processor import PdfOcrProcessor
from amazon_invoices.services.tesseract_engine import TesseractOcrEngine
from amazon_invoices.services.text_extraction import ParsedInvoice
from amazon_invoices.workspace import Workspace

from .util import console, fmt_amount, load_workspace_settings, open_database, print_import_results


def _show_preview(pdf_path: Path, parsed: ParsedInvoice | None, confidence: float) -> None:
    console.print(f"[cyan]{pdf_path.name}[/] OCR confidence {confidence}%")
    if parsed is None:
        console.print("[yellow]No invoice data found in PDF[/]")
        return

    console.print(
        f"Order [bold]{parsed.order_number}[/]  Invoice [bold]{parsed.invoice_number}[/]  "
        f"Date {parsed.invoice_date or '-'}  Currency {parsed.currency or '-'}"
    )
    table = Table(show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Product", style="white")
    table.add_column("ASIN", style="blue")
    table.add_column("Qty", justify="right")
    table.add_column("Unit", justify="right")
    table.add_column("Total", justify="right")
    for n, item in enumerate(parsed.items, start=1):
        table.add_row(
            str(n),
            item.product_name[:50],
            item.asin or "",
            str(item.quantity),
            fmt_amount(item.unit_price),
            fmt_amount(item.total_price),
        )
    console.print(table)
    console.print(
        f"Shipping {parsed.shipping_amount:.2f}  Tax {parsed.tax_amount:.2f}  "
        f"[bold]Total {parsed.total_amount:.2f}[/]"
    )
    if parsed.payment_method:
        console.print(f"Payment: {parsed.payment_method} {parsed.payment_reference or ''}".rstrip())


def run(*, workspace: Workspace, pdf_path: Path, actor: str, write: bool = False) -> int:
    """OCR one Amazon invoice PDF and stage it.

    Dry-run prints what the OCR pass extracted without touching the database.
    """
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    engine = TesseractOcrEngine(settings.ocr)
    with db:
        processor = PdfOcrProcessor(
            engine, InvoiceImportService(db, settings), settings.ocr.min_confidence
        )
        try:
            if not write:
                parsed, confidence = processor.preview_file(pdf_path)
                _show_preview(pdf_path, parsed, confidence)
                console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
                return 0
            result = processor.process_file(pdf_path, actor=actor)
        except ExtractionError as e:
            console.print(f"[red]Error:[/red] {e}")
            return 1
        finally:
            engine.cleanup()

    print_import_results([result])
    return 0
