"""
Duplicate detection for incoming invoices.

An invoice arriving from e-mail, PDF or the sample downloader is compared with
what is already staged. Four independent checks each produce at most one
candidate with a confidence score; the most confident candidate wins:

- same order number: 100
- same invoice number: 95
- same invoice date and total within 0.01: 70, +10 when the totals are
  exactly equal, capped at 90
- same item count, total within 5 % (at least 1.00) and at least 80 % of the
  lines matching an existing line: similarity × 75

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from amazon_invoices.config import AMOUNT_TOLERANCE
from amazon_invoices.ml.name_similarity import levenshtein_ratio, normalize_for_comparison
from amazon_invoices.model.invoice import Invoice
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.storage.invoice_repository import InvoiceRepository

ITEM_MATCH_THRESHOLD = 0.8

# Float headroom for SQL BETWEEN on money columns
_EPSILON = 1e-6


@dataclass
class DuplicateMatch:
    """An already staged invoice that looks like the candidate."""

    invoice_id: int
    invoice_number: str
    order_number: str
    confidence: int
    criteria: str

    def to_dict(self) -> dict:
        return asdict(self)


def text_similarity(a: str, b: str) -> float:
    """Levenshtein similarity of normalized product names; two blanks are identical."""
    a = normalize_for_comparison(a)
    b = normalize_for_comparison(b)
    if not a and not b:
        return 1.0
    return levenshtein_ratio(a, b)


def item_similarity(a: InvoiceItem, b: InvoiceItem) -> float:
    """Average of the comparable factors between two line items.

    ASIN and SKU only count when both sides carry them. Prices within 5 %
    score 1, otherwise 1 - 2 × relative difference (floored at 0).
    """
    score = 0.0
    factors = 0

    if a.asin and b.asin:
        score += 1.0 if a.asin == b.asin else 0.0
        factors += 1
    if a.sku and b.sku:
        score += 1.0 if a.sku == b.sku else 0.0
        factors += 1
    if a.product_name and b.product_name:
        score += text_similarity(a.product_name, b.product_name)
        factors += 1
    if a.unit_price > 0 and b.unit_price > 0:
        diff = abs(a.unit_price - b.unit_price) / max(a.unit_price, b.unit_price)
        score += 1.0 if diff <= 0.05 else max(0.0, 1.0 - diff * 2)
        factors += 1
    score += 1.0 if a.quantity == b.quantity else 0.0
    factors += 1

    return score / factors


def items_similarity(new_items: list[InvoiceItem], existing_items: list[InvoiceItem]) -> float:
    """Share of new lines whose best match among existing lines reaches the threshold."""
    if not new_items or len(new_items) != len(existing_items):
        return 0.0
    matches = 0
    for item in new_items:
        best = max(item_similarity(item, other) for other in existing_items)
        if best >= ITEM_MATCH_THRESHOLD:
            matches += 1
    return matches / len(new_items)


class DuplicateDetectionService:
    """Finds staged invoices that duplicate a candidate invoice."""

    def __init__(self, repository: InvoiceRepository):
        self.repository = repository

    def find_duplicate_invoice(self, candidate: Invoice) -> Optional[DuplicateMatch]:
        """Return the most confident duplicate of the candidate, or None.

        The candidate itself (same id) is never reported.
        """
        found = [
            match
            for match in (
                self._by_order_number(candidate),
                self._by_invoice_number(candidate),
                self._by_date_and_total(candidate),
                self._by_item_combination(candidate),
            )
            if match is not None
        ]
        if not found:
            return None
        return max(found, key=lambda m: m.confidence)

    def _by_order_number(self, candidate: Invoice) -> Optional[DuplicateMatch]:
        if not candidate.order_number:
            return None
        existing = self.repository.find_candidates(
            order_number=candidate.order_number.strip(), exclude_id=candidate.id
        )
        return _match(existing[0], 100, "order_number") if existing else None

    def _by_invoice_number(self, candidate: Invoice) -> Optional[DuplicateMatch]:
        if not candidate.invoice_number:
            return None
        existing = self.repository.find_candidates(
            invoice_number=candidate.invoice_number.strip(), exclude_id=candidate.id
        )
        return _match(existing[0], 95, "invoice_number") if existing else None

    def _by_date_and_total(self, candidate: Invoice) -> Optional[DuplicateMatch]:
        if candidate.total_amount <= 0:
            return None
        total = candidate.total_amount
        existing = self.repository.find_candidates(
            invoice_date=candidate.invoice_date,
            total_between=(total - AMOUNT_TOLERANCE - _EPSILON, total + AMOUNT_TOLERANCE + _EPSILON),
            exclude_id=candidate.id,
        )
        if not existing:
            return None
        found = existing[0]
        confidence = 70
        if abs(found.total_amount - total) < _EPSILON:
            confidence += 10
        return _match(found, min(confidence, 90), "date_total")

    def _by_item_combination(self, candidate: Invoice) -> Optional[DuplicateMatch]:
        if not candidate.items:
            return None
        total = candidate.total_amount
        tolerance = max(total * 0.05, 1.00)
        existing = self.repository.find_candidates(
            total_between=(total - tolerance, total + tolerance), exclude_id=candidate.id
        )
        for found in existing:
            if found.item_count() != candidate.item_count():
                continue
            similarity = items_similarity(candidate.items, found.items)
            if similarity >= ITEM_MATCH_THRESHOLD:
                return _match(found, round(similarity * 75), "item_combination")
        return None


def _match(invoice: Invoice, confidence: int, criteria: str) -> DuplicateMatch:
    return DuplicateMatch(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        order_number=invoice.order_number,
        confidence=confidence,
        criteria=criteria,
    )


__all__ = [
    "DuplicateDetectionService",
    "DuplicateMatch",
    "ITEM_MATCH_THRESHOLD",
    "item_similarity",
    "items_similarity",
    "text_similarity",
]
