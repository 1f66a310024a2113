"""
PDF/OCR import pipeline.

The OCR engine is an injected collaborator: anything with pdf_to_images() and
perform_ocr() will do (a Tesseract wrapper in production, a Mock in tests).
This module only hashes the file, joins and cleans the OCR text, parses it and
hands the invoice to the import service.

A PDF is identified by the SHA-256 of its content, so a renamed copy of an
already processed file is still reported as a duplicate.

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from amazon_invoices.services.errors import ExtractionError
from amazon_invoices.services.invoice_import_service import (
    STATUS_DUPLICATE,
    STATUS_DUPLICATE_INVOICE,
    STATUS_ERROR,
    STATUS_NO_INVOICE_DATA,
    ImportResult,
    InvoiceImportService,
)
from amazon_invoices.services.text_extraction import (
    ParsedInvoice,
    clean_ocr_text,
    parse_invoice_text,
    text_confidence,
)
from amazon_invoices.storage.processing_log import SOURCE_PDF

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 60.0


@dataclass
class OcrResult:
    text: str
    confidence: float


class OcrEngine(Protocol):
    def pdf_to_images(self, pdf_path: Path) -> Sequence[Path]:
        ...

    def perform_ocr(self, image_path: Path) -> OcrResult:
        ...


def file_hash(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def scan_pdf_files(directory: Path) -> list[Path]:
    """PDF files directly inside directory, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".pdf")


class PdfOcrProcessor:
    """Turns Amazon invoice PDFs into staged invoices."""

    def __init__(
        self,
        engine: OcrEngine,
        importer: InvoiceImportService,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ):
        self.engine = engine
        self.importer = importer
        self.log = importer.log
        self.min_confidence = min_confidence

    def extract_text(self, pdf_path: Path) -> tuple[str, float]:
        """OCR every page and return (cleaned text, confidence 0-100).

        Raises:
            ExtractionError: If the engine fails
        """
        try:
            pages = [self.engine.perform_ocr(image) for image in self.engine.pdf_to_images(pdf_path)]
        except Exception as e:
            raise ExtractionError(f"PDF processing failed: {e}") from e

        text = clean_ocr_text("\n".join(page.text for page in pages))
        if pages:
            confidence = sum(page.confidence for page in pages) / len(pages)
        else:
            confidence = text_confidence(text)
        return text, round(confidence, 2)

    def preview_file(self, pdf_path: Path | str) -> tuple[Optional[ParsedInvoice], float]:
        """OCR and parse a PDF without importing or recording it."""
        pdf_path = Path(pdf_path)
        if not pdf_path.is_file():
            raise ExtractionError(f"PDF file not found: {pdf_path}")
        text, confidence = self.extract_text(pdf_path)
        return parse_invoice_text(text, fallback_prefix="PDF"), confidence

    def process_file(self, pdf_path: Path | str, *, actor: str) -> ImportResult:
        """Run one PDF through OCR, parsing and import.

        Raises:
            ExtractionError: If the file is missing or OCR fails
        """
        pdf_path = Path(pdf_path)
        if not pdf_path.is_file():
            raise ExtractionError(f"PDF file not found: {pdf_path}")

        key = file_hash(pdf_path)
        if self.log.is_source_processed(SOURCE_PDF, key):
            return ImportResult(
                status=STATUS_DUPLICATE, message="PDF already processed", source=str(pdf_path)
            )

        try:
            text, confidence = self.extract_text(pdf_path)
        except ExtractionError as e:
            self.log.mark_source_processed(SOURCE_PDF, key, STATUS_ERROR, details=str(e))
            raise

        parsed = parse_invoice_text(text, fallback_prefix="PDF")
        if parsed is None:
            self.log.mark_source_processed(
                SOURCE_PDF, key, STATUS_NO_INVOICE_DATA, details=pdf_path.name
            )
            return ImportResult(
                status=STATUS_NO_INVOICE_DATA,
                message="No invoice data found in PDF",
                source=str(pdf_path),
            )

        invoice = parsed.to_invoice(
            self.importer.settings.default_currency, raw_data=text, pdf_path=str(pdf_path)
        )
        result = self.importer.import_invoice(invoice, actor=actor, source=SOURCE_PDF)
        result.source = str(pdf_path)
        if confidence < self.min_confidence:
            result.warnings.append(f"Low OCR confidence: {confidence}%")

        status = STATUS_DUPLICATE if result.status == STATUS_DUPLICATE_INVOICE else "processed"
        invoice_id = result.invoice_id if result.success else None
        self.log.mark_source_processed(SOURCE_PDF, key, status, invoice_id, pdf_path.name)
        return result

    def process_files(self, paths: Sequence[Path | str], *, actor: str) -> list[ImportResult]:
        """Process several PDFs; a failing file becomes an error entry."""
        results: list[ImportResult] = []
        for path in paths:
            try:
                results.append(self.process_file(path, actor=actor))
            except Exception as e:
                logger.warning("Failed to process %s: %s", path, e, exc_info=True)
                results.append(
                    ImportResult(
                        status=STATUS_ERROR,
                        message="PDF processing failed",
                        error=str(e),
                        source=str(path),
                    )
                )
        return results

    def process_directory(self, directory: Path | str, *, actor: str) -> list[ImportResult]:
        """Process every PDF in a directory.

        Raises:
            ExtractionError: If the directory does not exist
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise ExtractionError(f"Directory not found: {directory}")
        return self.process_files(scan_pdf_files(directory), actor=actor)


__all__ = [
    "DEFAULT_MIN_CONFIDENCE",
    "OcrEngine",
    "OcrResult",
    "PdfOcrProcessor",
    "file_hash",
    "scan_pdf_files",
]
