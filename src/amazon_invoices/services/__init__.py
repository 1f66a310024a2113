"""
Service layer for the Amazon invoice importer.

Business logic separated from the CLI and the web controller.

Principles:
- No UI framework imports (Rich, Typer)
- All dependencies injected through constructors
- Mutating calls take the acting user explicitly
- Functions return data structures
"""

from amazon_invoices.services.errors import AllocationError, ExtractionError
from amazon_invoices.services.duplicate_detection_service import (
    DuplicateDetectionService,
    DuplicateMatch,
)
from amazon_invoices.services.item_matching_service import ItemMatchingService
from amazon_invoices.services.invoice_import_service import (
    ImportResult,
    InvoiceImportService,
    PaymentSplit,
    STATUS_DUPLICATE,
    STATUS_DUPLICATE_INVOICE,
    STATUS_ERROR,
    STATUS_NO_INVOICE_DATA,
    STATUS_SUCCESS,
)
from amazon_invoices.services.invoice_downloader import SampleInvoiceDownloader
from amazon_invoices.services.text_extraction import (
    ParsedInvoice,
    is_amazon_email,
    parse_email,
    parse_invoice_text,
)
from amazon_invoices.services.pdf_ocr_processor import OcrEngine, OcrResult, PdfOcrProcessor
from amazon_invoices.services.tesseract_engine import TesseractOcrEngine
from amazon_invoices.services.gmail_processor import (
    GmailProcessor,
    MailboxClient,
    MailMessage,
    build_query,
)

__all__ = [
    "AllocationError",
    "DuplicateDetectionService",
    "DuplicateMatch",
    "ExtractionError",
    "GmailProcessor",
    "ImportResult",
    "InvoiceImportService",
    "ItemMatchingService",
    "MailMessage",
    "MailboxClient",
    "OcrEngine",
    "OcrResult",
    "ParsedInvoice",
    "PaymentSplit",
    "PdfOcrProcessor",
    "STATUS_DUPLICATE",
    "STATUS_DUPLICATE_INVOICE",
    "STATUS_ERROR",
    "STATUS_NO_INVOICE_DATA",
    "STATUS_SUCCESS",
    "TesseractOcrEngine",
    "SampleInvoiceDownloader",
    "build_query",
    "is_amazon_email",
    "parse_email",
    "parse_invoice_text",
]
