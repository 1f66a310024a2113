from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest

from amazon_invoices.services.errors import ExtractionError
from amazon_invoices.services.invoice_import_service import (
    STATUS_DUPLICATE,
    STATUS_DUPLICATE_INVOICE,
    STATUS_ERROR,
    STATUS_NO_INVOICE_DATA,
    STATUS_SUCCESS,
    InvoiceImportService,
)
from amazon_invoices.services.pdf_ocr_processor import (
    OcrResult,
    PdfOcrProcessor,
    file_hash,
    scan_pdf_files,
)
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.processing_log import SOURCE_PDF
from amazon_invoices.storage.schema import install_schema

OCR_TEXT = """Amazon.com Invoice
Order #: 123-4567890-1234567
Invoice Number: INV-2024-0001
Invoice Date: March 15, 2024
2 x USB-C Cable $9.99
Grand Total: $19.98
"""


@pytest.fixture
def importer():
    db = SqliteGateway(":memory:")
    install_schema(db)
    yield InvoiceImportService(db)
    db.close()


@pytest.fixture
def engine():
    engine = Mock()
    engine.pdf_to_images.return_value = [Path("page-1.png")]
    engine.perform_ocr.return_value = OcrResult(text=OCR_TEXT, confidence=92.0)
    return engine


def _pdf(directory: Path, name: str, content: bytes = b"%PDF-1.4 sample") -> Path:
    path = directory / name
    path.write_bytes(content)
    return path


class DescribePdfOcrProcessor:
    def it_should_import_invoice_from_ocr_text(self, engine, importer, tmp_path):
        # Arrange
        processor = PdfOcrProcessor(engine, importer)
        pdf = _pdf(tmp_path, "invoice.pdf")

        # Act
        result = processor.process_file(pdf, actor="alice")

        # Assert
        assert result.status == STATUS_SUCCESS
        stored = importer.repository.find_by_id(result.invoice_id)
        assert stored.invoice_number == "INV-2024-0001"
        assert stored.pdf_path == str(pdf)
        assert stored.items[0].quantity == 2
        assert importer.log.source_stats(SOURCE_PDF, 30) == {"processed": 1}

    def it_should_skip_a_file_it_has_already_processed(self, engine, importer, tmp_path):
        processor = PdfOcrProcessor(engine, importer)
        pdf = _pdf(tmp_path, "invoice.pdf")
        processor.process_file(pdf, actor="alice")

        result = processor.process_file(pdf, actor="alice")

        assert result.status == STATUS_DUPLICATE
        assert engine.pdf_to_images.call_count == 1

    def it_should_report_duplicate_invoice_for_a_different_file_with_same_order(self, engine, importer, tmp_path):
        processor = PdfOcrProcessor(engine, importer)
        processor.process_file(_pdf(tmp_path, "a.pdf", b"first"), actor="alice")

        result = processor.process_file(_pdf(tmp_path, "b.pdf", b"second"), actor="alice")

        assert result.status == STATUS_DUPLICATE_INVOICE
        assert importer.log.source_stats(SOURCE_PDF, 30) == {"processed": 1, "duplicate": 1}

    def it_should_report_no_invoice_data(self, engine, importer, tmp_path):
        engine.perform_ocr.return_value = OcrResult(text="Holiday photos", confidence=80.0)
        processor = PdfOcrProcessor(engine, importer)

        result = processor.process_file(_pdf(tmp_path, "photo.pdf"), actor="alice")

        assert result.status == STATUS_NO_INVOICE_DATA
        assert importer.repository.count() == 0

    def it_should_warn_on_low_ocr_confidence(self, engine, importer, tmp_path):
        engine.perform_ocr.return_value = OcrResult(text=OCR_TEXT, confidence=40.0)
        processor = PdfOcrProcessor(engine, importer)

        result = processor.process_file(_pdf(tmp_path, "blurry.pdf"), actor="alice")

        assert result.success
        assert "Low OCR confidence: 40.0%" in result.warnings

    def it_should_wrap_engine_failures(self, engine, importer, tmp_path):
        engine.pdf_to_images.side_effect = RuntimeError("ghostscript missing")
        processor = PdfOcrProcessor(engine, importer)

        with pytest.raises(ExtractionError, match="PDF processing failed: ghostscript missing"):
            processor.process_file(_pdf(tmp_path, "invoice.pdf"), actor="alice")

        assert importer.log.source_stats(SOURCE_PDF, 30) == {"error": 1}

    def it_should_raise_for_missing_file(self, engine, importer, tmp_path):
        processor = PdfOcrProcessor(engine, importer)

        with pytest.raises(ExtractionError, match="PDF file not found"):
            processor.process_file(tmp_path / "nope.pdf", actor="alice")


class DescribeProcessDirectory:
    def it_should_capture_per_file_errors_and_continue(self, engine, importer, tmp_path):
        # Arrange
        engine.perform_ocr.side_effect = [
            OcrResult(text=OCR_TEXT, confidence=90.0),
            RuntimeError("unreadable page"),
        ]
        _pdf(tmp_path, "a.pdf", b"one")
        _pdf(tmp_path, "b.pdf", b"two")
        (tmp_path / "notes.txt").write_text("ignore me")
        processor = PdfOcrProcessor(engine, importer)

        # Act
        results = processor.process_directory(tmp_path, actor="alice")

        # Assert
        assert [r.status for r in results] == [STATUS_SUCCESS, STATUS_ERROR]
        assert "unreadable page" in results[1].error
        assert results[1].to_dict()["success"] is False
        assert results[1].source.endswith("b.pdf")

    def it_should_raise_for_missing_directory(self, engine, importer, tmp_path):
        processor = PdfOcrProcessor(engine, importer)

        with pytest.raises(ExtractionError):
            processor.process_directory(tmp_path / "missing", actor="alice")


class DescribeFileHelpers:
    def it_should_hash_by_content(self, tmp_path):
        a = _pdf(tmp_path, "a.pdf", b"same")
        b = _pdf(tmp_path, "b.pdf", b"same")

        assert file_hash(a) == file_hash(b)
        assert len(file_hash(a)) == 64

    def it_should_list_pdfs_case_insensitively(self, tmp_path):
        _pdf(tmp_path, "B.PDF")
        _pdf(tmp_path, "a.pdf")
        (tmp_path / "c.txt").write_text("x")

        assert [p.name for p in scan_pdf_files(tmp_path)] == ["B.PDF", "a.pdf"]


class DescribePreviewFile:
    def it_should_parse_without_importing_or_recording(self, engine, importer, tmp_path):
        processor = PdfOcrProcessor(engine, importer)
        pdf = _pdf(tmp_path, "invoice.pdf")

        parsed, confidence = processor.preview_file(pdf)

        assert parsed.invoice_number == "INV-2024-0001"
        assert confidence == 92.0
        assert importer.repository.count() == 0
        assert not importer.log.is_source_processed(SOURCE_PDF, file_hash(pdf))
