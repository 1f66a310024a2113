from __future__ import annotations

import json
from datetime import date
from unittest.mock import Mock

import pytest

from amazon_invoices.model.invoice import Invoice, InvoiceStatus
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.model.payment import Payment
from amazon_invoices.services.errors import ExtractionError
from amazon_invoices.services.gmail_processor import GmailProcessor
from amazon_invoices.services.invoice_import_service import (
    STATUS_SUCCESS,
    ImportResult,
    InvoiceImportService,
)
from amazon_invoices.services.pdf_ocr_processor import PdfOcrProcessor
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.schema import install_schema
from amazon_invoices.web.import_controller import ImportController, Request


@pytest.fixture
def importer():
    db = SqliteGateway(":memory:")
    install_schema(db)
    yield InvoiceImportService(db)
    db.close()


@pytest.fixture
def controller(importer):
    return ImportController(importer)


@pytest.fixture
def invoice_id(importer):
    invoice = Invoice(
        invoice_number="AMZ-001", order_number="111-1111111-1111111",
        invoice_date=date(2025, 1, 10), total_amount=12.5,
    )
    invoice.add_item(InvoiceItem(line_number=1, product_name="Cable", quantity=1, unit_price=12.5, total_price=12.5))
    return importer.import_invoices([invoice], actor="alice")[0].invoice_id


def _get(action: str, **query) -> Request:
    return Request(method="GET", query={"action": action, **query})


def _post(action: str, form=None, body=None, **kw) -> Request:
    return Request(method="POST", query={"action": action}, form=form or {}, body=body, **kw)


class DescribeRouting:
    def it_should_default_to_dashboard(self, controller, invoice_id):
        response = controller.handle_request(Request())

        assert response.status == 200
        assert response.body["view"] == "dashboard"
        assert response.body["data"]["pending_invoices"][0]["id"] == invoice_id

    def it_should_return_404_for_unknown_action(self, controller):
        response = controller.handle_request(_get("nowhere"))

        assert response.status == 404
        assert response.body["data"]["title"] == "Page Not Found"

    def it_should_render_review_page_with_current_page(self, controller):
        response = controller.handle_request(_get("review", page="3"))

        assert response.body["data"]["current_page"] == 3

    def it_should_serialize_response_as_json(self, controller, invoice_id):
        response = controller.handle_request(_get("invoice-details", id=str(invoice_id)))

        assert json.loads(response.json())["invoice_number"] == "AMZ-001"


class DescribeInvoiceDetails:
    def it_should_return_invoice_with_problems(self, controller, invoice_id):
        response = controller.handle_request(_get("invoice-details", id=str(invoice_id)))

        assert response.status == 200
        assert response.body["problems"][0] == "Invoice has 1 unmatched items"

    def it_should_reject_bad_id(self, controller):
        response = controller.handle_request(_get("invoice-details", id="abc"))

        assert response.status == 400
        assert response.body == {"error": "Invalid request"}

    def it_should_report_missing_invoice(self, controller):
        response = controller.handle_request(_get("invoice-details", id="999"))

        assert response.status == 404
        assert response.body == {"error": "Invoice not found"}


class DescribeMarkProcessed:
    def it_should_require_post(self, controller):
        assert controller.handle_request(_get("mark-processed")).status == 405

    def it_should_reject_non_positive_id(self, controller):
        response = controller.handle_request(_post("mark-processed", {"invoice_id": "0"}))

        assert response.status == 400
        assert response.body == {"error": "Invalid invoice ID"}

    def it_should_complete_invoice_as_request_actor(self, controller, importer, invoice_id):
        response = controller.handle_request(
            _post("mark-processed", {"invoice_id": str(invoice_id), "fa_trans_no": "42"}, actor="bob")
        )

        assert response.body == {"success": True}
        stored = importer.repository.find_by_id(invoice_id)
        assert stored.status == InvoiceStatus.completed
        assert stored.fa_transaction_number == 42
        assert importer.log.for_invoice(invoice_id)[-1]["user_id"] == "bob"


@pytest.fixture
def payment_id(importer):
    invoice = Invoice(
        invoice_number="AMZ-002", order_number="222-2222222-2222222",
        invoice_date=date(2025, 1, 12), total_amount=40.0,
    )
    invoice.add_item(InvoiceItem(line_number=1, product_name="Toner", quantity=1, unit_price=40.0, total_price=40.0))
    invoice.add_payment(Payment(payment_method="credit_card", amount=40.0))
    invoice_id = importer.import_invoices([invoice], actor="alice")[0].invoice_id
    return importer.repository.find_by_id(invoice_id).payments[0].id


class DescribeAllocatePayment:
    def it_should_require_post(self, controller):
        assert controller.handle_request(_get("allocate-payment")).status == 405

    def it_should_reject_missing_bank_account(self, controller, payment_id):
        response = controller.handle_request(_post("allocate-payment", {"payment_id": str(payment_id)}))

        assert response.status == 400
        assert response.body == {"error": "Invalid payment allocation"}

    def it_should_allocate_as_request_actor(self, controller, importer, payment_id):
        form = {"payment_id": str(payment_id), "fa_bank_account": "1060", "fa_payment_type": "2", "notes": "Card"}

        response = controller.handle_request(_post("allocate-payment", form, actor="bob"))

        assert response.body["success"] is True
        invoice_id, payment = importer.repository.find_payment(payment_id)
        assert payment.allocation_complete is True
        assert payment.fa_payment_type == 2
        entry = importer.log.for_invoice(invoice_id)[-1]
        assert (entry["action"], entry["user_id"]) == ("payment_allocated", "bob")

    def it_should_report_unknown_payment(self, controller):
        response = controller.handle_request(
            _post("allocate-payment", {"payment_id": "404", "fa_bank_account": "1060"})
        )

        assert response.status == 404
        assert response.body["success"] is False

    def it_should_allocate_through_the_api(self, controller, importer, payment_id):
        body = json.dumps({"action": "allocate_payment", "payment_id": payment_id, "fa_bank_account": 1060})

        assert controller.handle_request(_post("api", body=body)).body == {"success": True}
        assert importer.repository.find_payment(payment_id)[1].fa_bank_account == 1060


class DescribeSplitPayment:
    def it_should_split_and_skip_blank_rows(self, controller, importer, payment_id):
        form = {
            "payment_id": str(payment_id),
            "split_amounts": ["25.00", "15.00", "", ""],
            "split_accounts": ["1060", "1065", "", ""],
            "split_types": ["1", "", "", ""],
        }

        response = controller.handle_request(_post("split-payment", form))

        assert response.body["success"] is True
        assert len(response.body["payment_ids"]) == 2
        invoice_id, first = importer.repository.find_payment(response.body["payment_ids"][0])
        assert first.fa_payment_type == 1
        assert importer.repository.find_by_id(invoice_id).unallocated_payment_count() == 0

    def it_should_reject_split_that_does_not_add_up(self, controller, importer, payment_id):
        form = {"payment_id": str(payment_id), "split_amounts": ["25.00"], "split_accounts": ["1060"]}

        response = controller.handle_request(_post("split-payment", form))

        assert response.status == 400
        assert "Split amounts total 25.00" in response.body["error"]
        assert importer.repository.find_payment(payment_id) is not None


class DescribeDirectoryImport:
    def it_should_reject_invalid_directory(self, controller, tmp_path):
        response = controller.handle_request(_post("directory", {"directory_path": str(tmp_path / "missing")}))

        assert response.body == {"success": False, "error": "Invalid directory path"}

    def it_should_process_a_valid_directory(self, importer, tmp_path):
        processor = Mock(spec=PdfOcrProcessor)
        processor.process_directory.return_value = [ImportResult(status=STATUS_SUCCESS, invoice_id=1)]
        controller = ImportController(importer, pdf_processor=processor)

        response = controller.handle_request(_post("directory", {"directory_path": str(tmp_path)}))

        assert response.body["success"] is True
        assert response.body["results"][0]["status"] == STATUS_SUCCESS
        processor.process_directory.assert_called_once_with(str(tmp_path), actor="system")


class DescribeCleanup:
    def it_should_report_cleanup_on_post(self, controller):
        response = controller.handle_request(_post("cleanup", {"days_to_keep": "30"}))

        assert response.body == {
            "success": True,
            "cleaned": {"log_entries": 0, "processed_sources": 0},
            "message": "Cleanup completed successfully",
        }

    def it_should_render_maintenance_page_on_get(self, controller):
        assert controller.handle_request(_get("cleanup")).body["view"] == "maintenance"


class DescribeApi:
    def it_should_require_post(self, controller):
        response = controller.handle_request(_get("api"))

        assert response.status == 405
        assert response.body == {"error": "Only POST method allowed"}

    def it_should_reject_unknown_api_action(self, controller):
        response = controller.handle_request(_post("api", body=json.dumps({"action": "explode"})))

        assert response.status == 400
        assert response.body == {"error": "Unknown action"}

    def it_should_list_pending_invoices(self, controller, invoice_id):
        response = controller.handle_request(_post("api", body=json.dumps({"action": "get_pending", "limit": 5})))

        assert [row["id"] for row in response.body["invoices"]] == [invoice_id]

    def it_should_return_statistics(self, controller, invoice_id):
        response = controller.handle_request(_post("api", body=json.dumps({"action": "get_statistics"})))

        assert response.body["invoice_processing"]["total_invoices"] == 1

    def it_should_mark_processed(self, controller, invoice_id):
        body = json.dumps({"action": "mark_processed", "invoice_id": invoice_id})

        assert controller.handle_request(_post("api", body=body)).body == {"success": True}

    def it_should_report_email_failures_as_unsuccessful(self, importer):
        gmail = Mock(spec=GmailProcessor)
        gmail.process_messages.side_effect = ExtractionError("Failed to search mailbox: offline")
        controller = ImportController(importer, gmail_processor=gmail)

        response = controller.handle_request(_post("api", body=json.dumps({"action": "process_emails"})))

        assert response.body == {"success": False, "error": "Failed to search mailbox: offline"}

    def it_should_report_missing_gmail_configuration(self, controller):
        response = controller.handle_request(_post("emails", {"max_emails": "5"}))

        assert response.body["success"] is False
