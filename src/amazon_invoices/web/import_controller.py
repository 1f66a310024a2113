"""
Import controller - a framework-neutral HTTP facade.

handle_request() dispatches on the "action" query parameter. Requests and
responses are plain dataclasses so any web framework (or a test) can adapt
them. Pages that would render a template return {"view": name, "data": ...};
AJAX and API endpoints return JSON bodies directly.

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from amazon_invoices.config import DEFAULT_ACTOR
from amazon_invoices.services.errors import AllocationError, ExtractionError
from amazon_invoices.services.gmail_processor import GmailProcessor
from amazon_invoices.services.invoice_import_service import InvoiceImportService, PaymentSplit
from amazon_invoices.services.pdf_ocr_processor import PdfOcrProcessor

logger = logging.getLogger(__name__)

REVIEW_PAGE_SIZE = 20


@dataclass
class Request:
    method: str = "GET"
    query: dict[str, Any] = field(default_factory=dict)
    form: dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    files: list[Path] = field(default_factory=list)
    actor: str = DEFAULT_ACTOR

    @property
    def is_post(self) -> bool:
        return self.method.upper() == "POST"

    def json(self) -> dict[str, Any]:
        """Decoded JSON body; an empty or non-object body decodes to {}."""
        if not self.body:
            return {}
        data = json.loads(self.body)
        return data if isinstance(data, dict) else {}


@dataclass
class Response:
    status: int = 200
    body: Any = None

    def json(self) -> str:
        return json.dumps(self.body, default=str)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _view(view: str, **data: Any) -> Response:
    return Response(200, {"view": view, "data": data})


def _results(results) -> dict[str, Any]:
    return {"success": True, "results": [r.to_dict() for r in results]}


class ImportController:
    """Routes import requests to the import services."""

    def __init__(
        self,
        importer: InvoiceImportService,
        pdf_processor: Optional[PdfOcrProcessor] = None,
        gmail_processor: Optional[GmailProcessor] = None,
    ):
        self.importer = importer
        self.pdf_processor = pdf_processor
        self.gmail_processor = gmail_processor
        self._routes: dict[str, Callable[[Request], Response]] = {
            "dashboard": self.dashboard,
            "emails": self.process_emails,
            "upload": self.upload_pdfs,
            "directory": self.process_directory,
            "review": self.review_invoices,
            "invoice-details": self.invoice_details,
            "mark-processed": self.mark_invoice_processed,
            "allocate-payment": self.allocate_payment,
            "split-payment": self.split_payment,
            "statistics": self.statistics,
            "cleanup": self.cleanup,
            "api": self.api,
        }

    def handle_request(self, request: Request) -> Response:
        action = request.query.get("action") or "dashboard"
        handler = self._routes.get(action)
        if handler is None:
            return Response(404, {"view": "404", "data": {"title": "Page Not Found"}})
        return handler(request)

    # ------------------------------
    # Pages
    # ------------------------------

    def dashboard(self, request: Request) -> Response:
        return _view(
            "dashboard",
            title="Amazon Invoice Import Dashboard",
            statistics=self.importer.get_processing_statistics(30),
            recent_activity=self.importer.get_recent_activity(20),
            pending_invoices=self.importer.get_pending_invoices(10),
        )

    def review_invoices(self, request: Request) -> Response:
        page = max(1, _int(request.query.get("page"), 1))
        return _view(
            "invoice_review",
            title="Invoice Review",
            invoices=self.importer.get_pending_invoices(REVIEW_PAGE_SIZE),
            current_page=page,
        )

    # ------------------------------
    # Imports
    # ------------------------------

    def process_emails(self, request: Request) -> Response:
        if not request.is_post:
            return _view("email_import", title="Gmail Email Import")
        return Response(200, self._run_email_import(request.form, request.actor))

    def _run_email_import(self, options: dict[str, Any], actor: str) -> dict[str, Any]:
        if self.gmail_processor is None:
            return {"success": False, "error": "Gmail processing is not configured"}
        since = date.today() - timedelta(days=_int(options.get("days_back"), 7))
        try:
            results = self.gmail_processor.process_messages(
                actor=actor, since=since, max_results=_int(options.get("max_emails"), 50)
            )
        except ExtractionError as e:
            logger.warning("E-mail import failed: %s", e)
            return {"success": False, "error": str(e)}
        return _results(results)

    def upload_pdfs(self, request: Request) -> Response:
        if not (request.is_post and request.files):
            return _view("pdf_upload", title="PDF Upload & Processing")
        if self.pdf_processor is None:
            return Response(200, {"success": False, "error": "PDF processing is not configured"})
        return Response(200, _results(self.pdf_processor.process_files(request.files, actor=request.actor)))

    def process_directory(self, request: Request) -> Response:
        if not request.is_post:
            return _view("directory_import", title="Directory PDF Import")

        directory = request.form.get("directory_path") or ""
        if not directory or not Path(directory).is_dir():
            return Response(200, {"success": False, "error": "Invalid directory path"})
        if self.pdf_processor is None:
            return Response(200, {"success": False, "error": "PDF processing is not configured"})
        return Response(200, _results(self.pdf_processor.process_directory(directory, actor=request.actor)))

    # ------------------------------
    # Invoices
    # ------------------------------

    def invoice_details(self, request: Request) -> Response:
        invoice_id = _int(request.query.get("id"))
        if invoice_id <= 0:
            return Response(400, {"error": "Invalid request"})
        details = self.importer.get_invoice_details(invoice_id)
        if details is None:
            return Response(404, {"error": "Invoice not found"})
        details["problems"] = self.importer.validate_invoice_data(invoice_id)
        return Response(200, details)

    def mark_invoice_processed(self, request: Request) -> Response:
        if not request.is_post:
            return Response(405, {"error": "Method not allowed"})
        invoice_id = _int(request.form.get("invoice_id"))
        if invoice_id <= 0:
            return Response(400, {"error": "Invalid invoice ID"})
        fa_trans_no = request.form.get("fa_trans_no")
        success = self.importer.mark_invoice_as_processed(
            invoice_id,
            actor=request.actor,
            notes=request.form.get("notes"),
            fa_trans_no=_int(fa_trans_no) if fa_trans_no not in (None, "") else None,
        )
        return Response(200, {"success": success})

    # ------------------------------
    # Payments
    # ------------------------------

    def allocate_payment(self, request: Request) -> Response:
        if not request.is_post:
            return Response(405, {"error": "Method not allowed"})
        payment_id = _int(request.form.get("payment_id"))
        bank_account = _int(request.form.get("fa_bank_account"))
        if payment_id <= 0 or bank_account <= 0:
            return Response(400, {"error": "Invalid payment allocation"})
        payment_type = request.form.get("fa_payment_type")
        success = self.importer.allocate_payment(
            payment_id,
            bank_account,
            _int(payment_type) if payment_type not in (None, "") else None,
            request.form.get("notes") or None,
            actor=request.actor,
        )
        if not success:
            return Response(404, {"success": False, "error": "Payment not found"})
        return Response(200, {"success": True, "message": "Payment allocated successfully"})

    def split_payment(self, request: Request) -> Response:
        if not request.is_post:
            return Response(405, {"error": "Method not allowed"})
        payment_id = _int(request.form.get("payment_id"))
        if payment_id <= 0:
            return Response(400, {"error": "Invalid payment ID"})

        amounts = request.form.get("split_amounts") or []
        accounts = request.form.get("split_accounts") or []
        types = request.form.get("split_types") or []
        parts: list[PaymentSplit] = []
        for n, amount in enumerate(amounts):
            account = _int(accounts[n]) if n < len(accounts) else 0
            value = _float(amount)
            # Blank rows of the split form are skipped.
            if value <= 0 or account <= 0:
                continue
            payment_type = types[n] if n < len(types) else None
            parts.append(
                PaymentSplit(
                    value, account, _int(payment_type) if payment_type not in (None, "") else None
                )
            )

        try:
            stored = self.importer.split_payment(payment_id, parts, actor=request.actor)
        except AllocationError as e:
            return Response(400, {"success": False, "error": str(e)})
        return Response(
            200,
            {
                "success": True,
                "message": "Payment split successfully",
                "payment_ids": [payment.id for payment in stored],
            },
        )

    # ------------------------------
    # Maintenance
    # ------------------------------

    def statistics(self, request: Request) -> Response:
        return Response(200, self.importer.get_processing_statistics(_int(request.query.get("days"), 30)))

    def cleanup(self, request: Request) -> Response:
        if not request.is_post:
            return _view("maintenance", title="System Maintenance")
        cleaned = self.importer.cleanup_old_records(_int(request.form.get("days_to_keep"), 90))
        return Response(
            200, {"success": True, "cleaned": cleaned, "message": "Cleanup completed successfully"}
        )

    # ------------------------------
    # JSON API
    # ------------------------------

    def api(self, request: Request) -> Response:
        if not request.is_post:
            return Response(405, {"error": "Only POST method allowed"})
        try:
            payload = request.json()
        except json.JSONDecodeError:
            return Response(400, {"error": "Invalid JSON body"})

        action = payload.get("action", "")
        if action == "process_emails":
            return Response(200, self._run_email_import(payload.get("options") or {}, request.actor))
        if action == "get_pending":
            return Response(200, {"invoices": self.importer.get_pending_invoices(_int(payload.get("limit"), 50))})
        if action == "get_statistics":
            return Response(200, self.importer.get_processing_statistics(_int(payload.get("days"), 30)))
        if action == "mark_processed":
            invoice_id = _int(payload.get("invoice_id"))
            fa_trans_no = payload.get("fa_trans_no")
            success = invoice_id > 0 and self.importer.mark_invoice_as_processed(
                invoice_id,
                actor=request.actor,
                fa_trans_no=_int(fa_trans_no) if fa_trans_no not in (None, "") else None,
            )
            return Response(200, {"success": success})
        if action == "allocate_payment":
            payment_id = _int(payload.get("payment_id"))
            bank_account = _int(payload.get("fa_bank_account"))
            payment_type = payload.get("fa_payment_type")
            success = payment_id > 0 and bank_account > 0 and self.importer.allocate_payment(
                payment_id,
                bank_account,
                _int(payment_type) if payment_type not in (None, "") else None,
                payload.get("notes"),
                actor=request.actor,
            )
            return Response(200, {"success": success})
        return Response(400, {"error": "Unknown action"})


__all__ = ["ImportController", "Request", "Response"]
