"""
Tests for duplicate invoice detection.
"""

from __future__ import annotations

from datetime import date

import pytest

from amazon_invoices.model.invoice import Invoice
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.services.duplicate_detection_service import (
    DuplicateDetectionService,
    item_similarity,
    text_similarity,
)
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.invoice_repository import InvoiceRepository
from amazon_invoices.storage.schema import install_schema


@pytest.fixture
def repo():
    db = SqliteGateway(":memory:")
    install_schema(db)
    yield InvoiceRepository(db)
    db.close()


@pytest.fixture
def service(repo):
    return DuplicateDetectionService(repo)


def _item(name: str = "Wireless Bluetooth Headphones", price: float = 45.0, **kw) -> InvoiceItem:
    return InvoiceItem(
        line_number=kw.pop("line_number", 1), product_name=name, quantity=kw.pop("quantity", 1),
        unit_price=price, total_price=price, **kw,
    )


def _invoice(number: str, order: str, total: float = 45.0, day: date = date(2025, 6, 1), items=None) -> Invoice:
    invoice = Invoice(invoice_number=number, order_number=order, invoice_date=day, total_amount=total)
    for item in items or []:
        invoice.add_item(item)
    return invoice


class DescribeFindDuplicateInvoice:
    def it_should_report_order_number_match_with_full_confidence(self, repo, service):
        repo.save(_invoice("AMZ-1", "111-1111111-1111111"))

        match = service.find_duplicate_invoice(_invoice("AMZ-2", "111-1111111-1111111", total=10.0))

        assert match.confidence == 100
        assert match.criteria == "order_number"
        assert match.invoice_number == "AMZ-1"

    def it_should_report_invoice_number_match(self, repo, service):
        repo.save(_invoice("AMZ-1", "111"))

        match = service.find_duplicate_invoice(_invoice("AMZ-1", "222", total=10.0, day=date(2025, 1, 1)))

        assert (match.confidence, match.criteria) == (95, "invoice_number")

    def it_should_score_exact_date_and_total(self, repo, service):
        repo.save(_invoice("AMZ-1", "111", total=45.0))

        match = service.find_duplicate_invoice(_invoice("AMZ-2", "222", total=45.0))

        assert (match.confidence, match.criteria) == (80, "date_total")

    def it_should_score_date_and_total_within_a_cent(self, repo, service):
        repo.save(_invoice("AMZ-1", "111", total=45.00))

        match = service.find_duplicate_invoice(_invoice("AMZ-2", "222", total=45.01))

        assert (match.confidence, match.criteria) == (70, "date_total")

    def it_should_detect_same_items_on_a_different_day(self, repo, service):
        repo.save(_invoice("AMZ-1", "111", total=45.0, items=[_item(asin="B08N5WRWNW")]))

        candidate = _invoice(
            "AMZ-2", "222", total=46.0, day=date(2025, 6, 9),
            items=[_item("Wireless Bluetooth Headphones", price=46.0, asin="B08N5WRWNW")],
        )
        match = service.find_duplicate_invoice(candidate)

        assert match.criteria == "item_combination"
        assert match.confidence == 75

    def it_should_round_partial_item_combination_confidence(self, repo, service):
        # Arrange
        def gadgets(count: int) -> list[InvoiceItem]:
            return [
                _item(f"Gadget model {n}", price=10.0, asin=f"B0GADGET0{n}", line_number=n + 1)
                for n in range(count)
            ]

        repo.save(_invoice("AMZ-1", "111", total=100.0, items=gadgets(10)))
        odd_one_out = _item("Zebra printer ribbon", price=95.0, asin="B0RIBBON99", line_number=10)
        candidate = _invoice(
            "AMZ-2", "222", total=101.0, day=date(2025, 6, 20),
            items=gadgets(9) + [odd_one_out],
        )

        # Act
        match = service.find_duplicate_invoice(candidate)

        # Assert
        assert match.criteria == "item_combination"
        assert match.confidence == 68

    def it_should_return_highest_confidence_candidate(self, repo, service):
        repo.save(_invoice("AMZ-1", "111", total=45.0))
        repo.save(_invoice("AMZ-2", "222", total=99.0))

        match = service.find_duplicate_invoice(_invoice("AMZ-3", "222", total=45.0))

        assert match.invoice_number == "AMZ-2"
        assert match.confidence == 100

    def it_should_ignore_the_candidate_itself(self, repo, service):
        saved = repo.save(_invoice("AMZ-1", "111"))

        assert service.find_duplicate_invoice(saved) is None

    def it_should_return_none_for_unrelated_invoice(self, repo, service):
        repo.save(_invoice("AMZ-1", "111", total=45.0, items=[_item()]))

        candidate = _invoice("AMZ-9", "999", total=300.0, day=date(2025, 8, 1), items=[_item("Desk Lamp", 300.0)])

        assert service.find_duplicate_invoice(candidate) is None


class DescribeItemSimilarity:
    def it_should_ignore_punctuation_and_stop_words_in_names(self):
        assert text_similarity("The Mouse, for PC", "mouse") == 1.0

    def it_should_score_identical_items_as_one(self):
        assert item_similarity(_item(asin="A1"), _item(asin="A1")) == 1.0

    def it_should_penalize_large_price_difference(self):
        cheap = _item(price=10.0)
        dear = _item(price=20.0)

        assert item_similarity(cheap, dear) == pytest.approx(2 / 3)
