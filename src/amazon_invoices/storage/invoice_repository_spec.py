"""
Tests for the invoice repository.
"""

from datetime import date, datetime
from pathlib import Path
import sqlite3
import tempfile

import pytest

from amazon_invoices.model.invoice import Invoice, InvoiceStatus
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.model.payment import Payment
from amazon_invoices.storage.errors import RepositoryError
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.invoice_repository import InvoiceRepository
from amazon_invoices.storage.schema import INVOICES_TABLE, install_schema


@pytest.fixture
def gateway():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = SqliteGateway(Path(tmpdir) / "staging.db")
        install_schema(db)
        yield db
        db.close()


@pytest.fixture
def repo(gateway):
    return InvoiceRepository(gateway)


def _invoice(number: str = "AMZ-001", order: str = "123-4567890-1234567", **kw) -> Invoice:
    invoice = Invoice(
        invoice_number=number,
        order_number=order,
        invoice_date=kw.pop("invoice_date", date(2025, 3, 14)),
        total_amount=kw.pop("total_amount", 49.98),
        **kw,
    )
    invoice.add_item(
        InvoiceItem(line_number=2, product_name="Mouse", asin="B085BTK9P7", quantity=1, unit_price=29.99, total_price=29.99)
    )
    invoice.add_item(
        InvoiceItem(line_number=1, product_name="Cable", quantity=2, unit_price=9.995, total_price=19.99)
    )
    invoice.add_payment(Payment(payment_method="credit_card", payment_reference="****1234", amount=49.98))
    return invoice


def _count(gateway, table: str, invoice_id: int) -> int:
    row = gateway.query_one(
        f"SELECT COUNT(*) AS n FROM {gateway.table(table)} WHERE staging_invoice_id = ?", [invoice_id]
    )
    return row["n"]


class DescribeInvoiceRepositorySave:
    def it_should_assign_ids_on_first_save(self, repo):
        invoice = repo.save(_invoice())

        assert invoice.id is not None
        assert all(item.id is not None for item in invoice.items)
        assert invoice.payments[0].id is not None

    def it_should_load_items_ordered_by_line_number(self, repo):
        saved = repo.save(_invoice())

        loaded = repo.find_by_id(saved.id)

        assert [item.line_number for item in loaded.items] == [1, 2]
        assert loaded.items[1].asin == "B085BTK9P7"
        assert loaded.payments[0].payment_reference == "****1234"
        assert loaded.total_amount == pytest.approx(49.98)

    def it_should_not_duplicate_children_when_saved_twice(self, repo, gateway):
        # Arrange
        invoice = repo.save(_invoice())

        # Act
        repo.save(invoice)

        # Assert
        assert _count(gateway, "amazon_invoice_items_staging", invoice.id) == 2
        assert _count(gateway, "amazon_payment_staging", invoice.id) == 1

    def it_should_remove_items_omitted_from_collection(self, repo):
        invoice = repo.save(_invoice())
        invoice.items = [invoice.items[0]]

        repo.save(invoice)

        assert repo.find_by_id(invoice.id).item_count() == 1

    def it_should_update_header_fields(self, repo):
        invoice = repo.save(_invoice())
        invoice.notes = "Checked"
        invoice.status = InvoiceStatus.matched

        repo.save(invoice)
        loaded = repo.find_by_id(invoice.id)

        assert loaded.notes == "Checked"
        assert loaded.status == InvoiceStatus.matched

    def it_should_roll_back_and_wrap_errors(self, repo, gateway):
        repo.save(_invoice())
        clash = _invoice(order="999-0000000-0000000")

        with pytest.raises(RepositoryError, match="Failed to save invoice"):
            repo.save(clash)

        assert clash.id is None
        assert repo.count() == 1

    def it_should_keep_previous_children_when_save_fails(self, repo, gateway):
        invoice = repo.save(_invoice())
        invoice.items[0].line_number = 5
        invoice.items[1].line_number = 5

        with pytest.raises(RepositoryError):
            repo.save(invoice)

        assert _count(gateway, "amazon_invoice_items_staging", invoice.id) == 2


class DescribeInvoiceRepositoryQueries:
    @pytest.fixture
    def seeded(self, repo):
        repo.save(_invoice("AMZ-1", "111-0000000-0000001", invoice_date=date(2025, 1, 5)))
        repo.save(_invoice("AMZ-2", "222-0000000-0000002", invoice_date=date(2025, 2, 5), status="completed"))
        repo.save(_invoice("AMZ-3", "111-0000000-0000003", invoice_date=date(2025, 3, 5)))
        return repo

    def it_should_find_by_invoice_number(self, seeded):
        assert seeded.find_by_invoice_number("AMZ-2").order_number == "222-0000000-0000002"
        assert seeded.find_by_invoice_number("missing") is None

    def it_should_report_existence(self, seeded):
        assert seeded.exists_by_invoice_number("AMZ-1") is True
        assert seeded.exists_by_invoice_number("AMZ-9") is False

    def it_should_return_none_for_unknown_id(self, seeded):
        assert seeded.find_by_id(9999) is None

    def it_should_filter_by_status(self, seeded):
        pending = seeded.find_by_status("pending")

        assert [i.invoice_number for i in pending] == ["AMZ-3", "AMZ-1"]

    def it_should_filter_by_date_range_newest_first(self, seeded):
        found = seeded.find_by_date_range(date(2025, 1, 5), date(2025, 2, 5))

        assert [i.invoice_number for i in found] == ["AMZ-2", "AMZ-1"]

    def it_should_apply_combined_filters_to_find_all_and_count(self, seeded):
        filters = {"order_number": "111", "date_from": "2025-02-01"}

        assert [i.invoice_number for i in seeded.find_all(filters)] == ["AMZ-3"]
        assert seeded.count(filters) == 1
        assert seeded.count() == 3

    def it_should_paginate(self, seeded):
        page = seeded.find_all(limit=1, offset=1)

        assert [i.invoice_number for i in page] == ["AMZ-2"]

    def it_should_summarize_pending_invoices(self, seeded):
        summaries = seeded.pending_summaries()

        assert [s["invoice_number"] for s in summaries] == ["AMZ-3", "AMZ-1"]
        assert summaries[0]["item_count"] == 2
        assert summaries[0]["items_total"] == pytest.approx(49.98)


class DescribeInvoiceRepositoryStatusAndDelete:
    def it_should_update_status_and_stamp_processed_at(self, repo):
        invoice = repo.save(_invoice())

        updated = repo.update_status(invoice.id, "completed", notes="Posted", fa_trans_no=42)
        loaded = repo.find_by_id(invoice.id)

        assert updated is True
        assert loaded.status == InvoiceStatus.completed
        assert loaded.processed_at is not None
        assert loaded.notes == "Posted"
        assert loaded.fa_transaction_number == 42

    def it_should_report_no_update_for_unknown_invoice(self, repo):
        assert repo.update_status(404, "error") is False

    def it_should_delete_invoice_with_children(self, repo, gateway):
        # Arrange
        invoice = repo.save(_invoice())

        # Act
        deleted = repo.delete(invoice.id)

        # Assert
        assert deleted is True
        assert _count(gateway, "amazon_invoice_items_staging", invoice.id) == 0
        assert _count(gateway, "amazon_payment_staging", invoice.id) == 0
        assert repo.find_by_id(invoice.id) is None

    def it_should_roll_back_and_wrap_errors_when_delete_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            # Arrange
            gateway = _HeaderDeleteFailingGateway(Path(tmpdir) / "staging.db")
            install_schema(gateway)
            repo = InvoiceRepository(gateway)
            invoice = repo.save(_invoice())

            # Act
            with pytest.raises(RepositoryError, match="Failed to delete invoice") as excinfo:
                repo.delete(invoice.id)

            # Assert
            assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
            assert _count(gateway, "amazon_invoice_items_staging", invoice.id) == 2
            assert _count(gateway, "amazon_payment_staging", invoice.id) == 1
            assert repo.find_by_id(invoice.id) is not None
            gateway.close()


class _HeaderDeleteFailingGateway(SqliteGateway):
    def execute(self, query, params=()):
        if query.startswith(f"DELETE FROM {self.table(INVOICES_TABLE)}"):
            raise sqlite3.OperationalError("database is locked")
        return super().execute(query, params)


class DescribeInvoiceRepositoryDateNormalisation:
    def it_should_include_the_start_day_when_given_datetimes(self, repo):
        repo.save(_invoice(invoice_date=date(2025, 3, 14)))

        found = repo.find_by_date_range(datetime(2025, 3, 14, 9, 30), datetime(2025, 3, 14, 18, 0))
        filtered = repo.find_all({"date_from": datetime(2025, 3, 14, 12, 0), "date_to": datetime(2025, 3, 14, 12, 0)})

        assert [i.invoice_number for i in found] == ["AMZ-001"]
        assert [i.invoice_number for i in filtered] == ["AMZ-001"]


class DescribeInvoiceRepositoryPayments:
    def it_should_find_a_payment_with_its_invoice(self, repo):
        invoice = repo.save(_invoice())

        invoice_id, payment = repo.find_payment(invoice.payments[0].id)

        assert invoice_id == invoice.id
        assert payment.payment_reference == "****1234"
        assert repo.find_payment(9999) is None

    def it_should_allocate_a_single_payment_row(self, repo):
        invoice = repo.save(_invoice())
        payment_id = invoice.payments[0].id

        updated = repo.update_payment_allocation(payment_id, 1060, 2, notes="Business card")
        _, payment = repo.find_payment(payment_id)

        assert updated is True
        assert payment.allocation_complete is True
        assert payment.fa_bank_account == 1060
        assert payment.fa_payment_type == 2
        assert payment.notes == "Business card"
        assert repo.update_payment_allocation(9999, 1060) is False

    def it_should_replace_a_payment_with_its_parts(self, repo, gateway):
        invoice = repo.save(_invoice())
        original_id = invoice.payments[0].id
        parts = [
            Payment(payment_method="split", amount=30.00, fa_bank_account=1060, allocation_complete=True),
            Payment(payment_method="split", amount=19.98, fa_bank_account=1065, allocation_complete=True),
        ]

        stored = repo.replace_payment(original_id, invoice.id, parts)

        assert all(p.id is not None for p in stored)
        assert repo.find_payment(original_id) is None
        assert _count(gateway, "amazon_payment_staging", invoice.id) == 2
        assert repo.find_by_id(invoice.id).payments_total() == pytest.approx(49.98)
