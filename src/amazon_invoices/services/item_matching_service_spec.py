"""
Tests for the item matching service.

Covers tier precedence, rule management, auto-matching, manual matching with
rule learning, and ranked stock suggestions.
"""

from __future__ import annotations

from datetime import date

import pytest

from amazon_invoices.model.invoice import Invoice
from amazon_invoices.model.invoice_item import InvoiceItem, MatchType
from amazon_invoices.model.settings import MatchingSettings
from amazon_invoices.services.item_matching_service import ItemMatchingService
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.invoice_repository import InvoiceRepository
from amazon_invoices.storage.processing_log import ProcessingLog
from amazon_invoices.storage.schema import install_schema
from amazon_invoices.storage.stock_catalog import StockCatalog


@pytest.fixture
def gateway():
    db = SqliteGateway(":memory:")
    install_schema(db)
    catalog = StockCatalog(db)
    catalog.add("STK1", "Widget Deluxe")
    catalog.add("STK2", "Widget")
    catalog.add("MOUSE-ERG-001", "Ergonomic Wireless Mouse", "Ergonomic Wireless Mouse, 2.4GHz")
    catalog.add("KB-MECH-001", "Mechanical Gaming Keyboard")
    yield db
    db.close()


@pytest.fixture
def service(gateway):
    return ItemMatchingService(gateway)


def _item(line: int, name: str, **kw) -> InvoiceItem:
    return InvoiceItem(line_number=line, product_name=name, quantity=1, unit_price=10.0, total_price=10.0, **kw)


class DescribeFindMatchingStockItem:
    def it_should_prefer_asin_tier_over_name_tier(self, service):
        # Arrange
        service.add_matching_rule("asin", "X123", "STK1", actor="tester")
        service.add_matching_rule("product_name", "Widget", "STK2", actor="tester")

        # Act
        result = service.find_matching_stock_item("X123", None, "Widget")

        # Assert
        assert result == "STK1"

    def it_should_fall_through_to_keyword_tier(self, service):
        service.add_matching_rule("keyword", "Widget", "STK2", actor="tester")

        assert service.find_matching_stock_item(None, None, "Blue Widget Pro") == "STK2"

    def it_should_use_sku_when_asin_is_missing(self, service):
        service.add_matching_rule("sku", "SKU-9", "STK1", actor="tester")
        service.add_matching_rule("keyword", "Widget", "STK2", actor="tester")

        assert service.find_matching_stock_item("", "SKU-9", "Widget thing") == "STK1"

    def it_should_pick_lowest_priority_within_a_tier(self, service):
        service.add_matching_rule("keyword", "Widget", "STK2", priority=5, actor="tester")
        service.add_matching_rule("keyword", "Blue", "STK1", priority=2, actor="tester")

        assert service.find_matching_stock_item(None, None, "Blue Widget") == "STK1"

    def it_should_ignore_inactive_rules(self, service):
        rule_id = service.add_matching_rule("asin", "X123", "STK1", actor="tester")
        service.update_rule_status(rule_id, False)

        assert service.find_matching_stock_item("X123", None, "Anything") is None

    def it_should_return_none_without_hits(self, service):
        assert service.find_matching_stock_item("NOPE", "NOPE", "Nothing") is None


class DescribeMatchingRules:
    def it_should_store_unknown_rule_types_without_validation(self, service):
        rule_id = service.add_matching_rule("price_range", "10-20", "STK1", actor="tester")

        rules = service.get_matching_rules()

        assert [r.id for r in rules] == [rule_id]
        assert rules[0].match_type == "price_range"

    def it_should_join_stock_description_and_order_rules(self, service):
        service.add_matching_rule("sku", "B", "STK2", priority=2, actor="alice")
        service.add_matching_rule("asin", "A", "STK1", priority=1, actor="alice")

        rules = service.get_matching_rules()

        assert [r.match_value for r in rules] == ["A", "B"]
        assert rules[0].stock_description == "Widget Deluxe"
        assert rules[0].created_by == "alice"

    def it_should_filter_inactive_rules_unless_requested(self, service):
        rule_id = service.add_matching_rule("asin", "A", "STK1", actor="tester")
        service.update_rule_status(rule_id, False)

        assert service.get_matching_rules() == []
        assert len(service.get_matching_rules(active_only=False)) == 1

    def it_should_delete_rules(self, service):
        rule_id = service.add_matching_rule("asin", "A", "STK1", actor="tester")

        assert service.delete_rule(rule_id) is True
        assert service.delete_rule(rule_id) is False


class DescribeAutoMatchInvoiceItems:
    def it_should_match_only_unmatched_items(self, gateway, service):
        # Arrange
        repo = InvoiceRepository(gateway)
        invoice = Invoice(
            invoice_number="AMZ-100", order_number="111-1111111-1111111",
            invoice_date=date(2025, 5, 1), total_amount=30.0,
        )
        first = _item(1, "Widget A")
        first.match_to_stock("STK2", MatchType.manual)
        second = _item(2, "Widget B")
        second.match_to_stock("STK2", MatchType.new)
        invoice.add_item(first)
        invoice.add_item(second)
        invoice.add_item(_item(3, "Cable", asin="B07232M876"))
        repo.save(invoice)
        service.add_matching_rule("asin", "B07232M876", "STK1", actor="tester")
        service.add_matching_rule("keyword", "Widget", "STK1", actor="tester")

        # Act
        count = service.auto_match_invoice_items(invoice.id, actor="tester")

        # Assert
        loaded = repo.find_by_id(invoice.id)
        assert count == 1
        assert [i.match_type for i in loaded.items] == [MatchType.manual, MatchType.new, MatchType.auto]
        assert loaded.items[2].fa_stock_id == "STK1"
        assert [i.fa_stock_id for i in loaded.items[:2]] == ["STK2", "STK2"]

    def it_should_log_each_auto_match(self, gateway, service):
        repo = InvoiceRepository(gateway)
        invoice = Invoice(
            invoice_number="AMZ-101", order_number="1", invoice_date=date(2025, 5, 1), total_amount=10.0,
        )
        invoice.add_item(_item(1, "Blue Widget"))
        repo.save(invoice)
        service.add_matching_rule("keyword", "Widget", "STK2", actor="tester")

        service.auto_match_invoice_items(invoice.id, actor="bob")

        entries = ProcessingLog(gateway).for_invoice(invoice.id)
        assert entries[-1]["action"] == "item_auto_matched"
        assert entries[-1]["details"] == "Item 'Blue Widget' auto-matched to stock ID: STK2"
        assert entries[-1]["user_id"] == "bob"


class DescribeMatchItem:
    def it_should_record_manual_match_and_learn_rules(self, gateway, service):
        repo = InvoiceRepository(gateway)
        invoice = Invoice(
            invoice_number="AMZ-102", order_number="2", invoice_date=date(2025, 5, 1), total_amount=10.0,
        )
        invoice.add_item(_item(1, "Mouse", asin="B085BTK9P7", sku="M-1"))
        repo.save(invoice)
        item_id = invoice.items[0].id

        assert service.match_item(item_id, "MOUSE-ERG-001", actor="carol") is True

        loaded = repo.find_by_id(invoice.id).items[0]
        assert loaded.fa_item_matched is True
        assert loaded.match_type == MatchType.manual
        assert service.find_matching_stock_item("B085BTK9P7", None, "other") == "MOUSE-ERG-001"
        assert service.find_matching_stock_item(None, "M-1", "other") == "MOUSE-ERG-001"
        history = service.get_matching_history({"stock_id": "MOUSE-ERG-001"})
        assert history[0]["created_by"] == "carol"

    def it_should_return_false_for_unknown_item(self, service):
        assert service.match_item(999, "STK1", actor="carol") is False


class DescribeSuggestions:
    def it_should_rank_similar_stock_first(self, service):
        suggestions = service.get_suggested_stock_items("Ergonomic Wireless Mouse (Black)", limit=3)

        assert suggestions[0].stock_id == "MOUSE-ERG-001"
        assert suggestions[0].confidence >= 60
        assert all(s.stock_id != "KB-MECH-001" for s in suggestions)

    def it_should_put_rule_hits_first(self, service):
        service.add_matching_rule("keyword", "Gizmo", "KB-MECH-001", actor="tester")

        suggestions = service.get_suggested_stock_items("Gizmo Ergonomic Wireless Mouse")

        assert suggestions[0].stock_id == "KB-MECH-001"
        assert suggestions[0].confidence == 100

    def it_should_respect_limit_and_threshold(self, gateway):
        service = ItemMatchingService(gateway, settings=MatchingSettings(min_name_confidence=100))

        assert service.get_suggested_stock_items("Widget Deluxe Edition") == []

    def it_should_suggest_new_stock_fields(self, service):
        item = InvoiceItem(
            line_number=1, product_name="Kitchen Scale (Digital)", quantity=2, unit_price=12.5, total_price=25.0
        )

        suggestion = service.suggest_new_item(item)

        assert suggestion["stock_id"] == "KITSCA"
        assert suggestion["description"] == "Kitchen Scale"
        assert suggestion["category_id"] == 4
        assert suggestion["units"] == "pcs"
        assert suggestion["purchase_account"] == "5010"
