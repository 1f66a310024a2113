"""
OCR engine backed by the poppler and tesseract command line tools.

pdftoppm renders each PDF page to a PNG in a scratch directory; tesseract reads
each PNG and writes text to stdout. Tool failures raise (CalledProcessError,
FileNotFoundError, TimeoutExpired) and are wrapped by PdfOcrProcessor.
Tesseract's stdout carries no confidence, so the text heuristic is used.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from amazon_invoices.model.settings import OcrSettings
from amazon_invoices.services.errors import ExtractionError
from amazon_invoices.services.pdf_ocr_processor import OcrResult
from amazon_invoices.services.text_extraction import text_confidence

logger = logging.getLogger(__name__)


class TesseractOcrEngine:
    def __init__(self, settings: OcrSettings | None = None):
        self.settings = settings or OcrSettings()
        self._work_dirs: list[Path] = []

    def pdf_to_images(self, pdf_path: Path) -> list[Path]:
        work_dir = Path(tempfile.mkdtemp(prefix="amazon_invoices_ocr_"))
        self._work_dirs.append(work_dir)
        prefix = work_dir / "page"
        subprocess.run(
            [self.settings.pdftoppm_path, "-png", "-r", str(self.settings.dpi), str(pdf_path), str(prefix)],
            check=True,
            capture_output=True,
            timeout=self.settings.timeout_seconds,
        )
        pages = sorted(work_dir.glob("page*.png"))
        if not pages:
            raise ExtractionError(f"No pages rendered from {pdf_path}")
        return pages

    def perform_ocr(self, image_path: Path) -> OcrResult:
        result = subprocess.run(
            [
                self.settings.tesseract_path,
                str(image_path),
                "stdout",
                "-l", self.settings.language,
                "--dpi", str(self.settings.dpi),
            ],
            check=True,
            capture_output=True,
            text=True,
            timeout=self.settings.timeout_seconds,
        )
        text = result.stdout.strip()
        return OcrResult(text=text, confidence=text_confidence(text))

    def available_tools(self) -> dict[str, bool]:
        return {
            "pdftoppm": shutil.which(self.settings.pdftoppm_path) is not None,
            "tesseract": shutil.which(self.settings.tesseract_path) is not None,
        }

    def cleanup(self) -> None:
        """Remove the scratch directories created by pdf_to_images()."""
        for work_dir in self._work_dirs:
            shutil.rmtree(work_dir, ignore_errors=True)
            logger.debug("Removed OCR work directory %s", work_dir)
        self._work_dirs.clear()


__all__ = ["TesseractOcrEngine"]
