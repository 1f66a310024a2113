from __future__ import annotations

"""
Invoice aggregate for staged Amazon purchases.

Scope
- Pure Pydantic v2 models; no I/O.
- An Invoice exclusively owns its items and payments.
- validate() is advisory: it reports problems but never blocks construction
  or persistence. Staged data may be saved in an inconsistent state for
  manual review.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from amazon_invoices.config import AMOUNT_TOLERANCE, DEFAULT_CURRENCY
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.model.money import amounts_differ
from amazon_invoices.model.payment import Payment

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


class InvoiceStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    matched = "matched"
    completed = "completed"
    error = "error"


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


class Invoice(BaseModel):
    """One imported Amazon invoice with its line items and payments."""

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[int] = None
    invoice_number: str
    order_number: str
    invoice_date: date
    total_amount: float
    tax_amount: float = 0.0
    shipping_amount: float = 0.0
    currency: str = DEFAULT_CURRENCY
    pdf_path: Optional[str] = None
    raw_data: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.pending
    created_at: datetime = Field(default_factory=_now)
    processed_at: Optional[datetime] = None
    fa_transaction_number: Optional[int] = None
    notes: Optional[str] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)

    @field_serializer("created_at", "processed_at")
    def _serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return value.strftime(TIMESTAMP_FORMAT) if value is not None else None

    # ------------------------------
    # Collections
    # ------------------------------

    def add_item(self, item: InvoiceItem) -> None:
        self.items.append(item)

    def add_payment(self, payment: Payment) -> None:
        self.payments.append(payment)

    def item_count(self) -> int:
        return len(self.items)

    # ------------------------------
    # Arithmetic
    # ------------------------------

    def items_total(self) -> float:
        return sum(item.total_price for item in self.items)

    def payments_total(self) -> float:
        return sum(payment.amount for payment in self.payments)

    def calculated_total(self) -> float:
        """Items total plus tax and shipping."""
        return self.items_total() + self.tax_amount + self.shipping_amount

    def all_items_matched(self) -> bool:
        return all(item.fa_item_matched for item in self.items)

    def all_payments_allocated(self) -> bool:
        return all(payment.allocation_complete for payment in self.payments)

    def unmatched_item_count(self) -> int:
        return sum(1 for item in self.items if not item.fa_item_matched)

    def unallocated_payment_count(self) -> int:
        return sum(1 for payment in self.payments if not payment.allocation_complete)

    def is_fully_paid(self) -> bool:
        return self.payments_total() >= self.total_amount - AMOUNT_TOLERANCE

    # ------------------------------
    # Validation
    # ------------------------------

    def validate(self) -> list[str]:
        """Return a list of violated invariants (empty when consistent).

        Item and payment totals are compared with the invoice total only when
        the respective collection is non-empty.
        """
        errors: list[str] = []
        if not self.invoice_number:
            errors.append("Invoice number is required")
        if not self.order_number:
            errors.append("Order number is required")
        if self.total_amount <= 0:
            errors.append("Total amount must be greater than zero")
        if not _CURRENCY_RE.match(self.currency or ""):
            errors.append("Currency must be a valid 3-letter ISO code")
        if self.items and amounts_differ(self.total_amount, self.items_total()):
            errors.append("Invoice total does not match sum of items")
        if self.payments and amounts_differ(self.total_amount, self.payments_total()):
            errors.append("Invoice total does not match sum of payments")
        return errors

    # ------------------------------
    # Serialization and copies
    # ------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with JSON-friendly values (dates as YYYY-MM-DD)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Invoice":
        return cls.model_validate(data)

    def duplicate(self) -> "Invoice":
        """Return a deep copy with a fresh identity.

        Invoice, item and payment ids are cleared so the copy is inserted as a
        new aggregate on save. Ledger linkage and processing timestamps are not
        carried over.
        """
        return self.model_copy(
            deep=True,
            update={
                "id": None,
                "created_at": _now(),
                "processed_at": None,
                "fa_transaction_number": None,
                "items": [item.model_copy(update={"id": None}) for item in self.items],
                "payments": [p.model_copy(update={"id": None}) for p in self.payments],
            },
        )


__all__ = ["Invoice", "InvoiceStatus", "TIMESTAMP_FORMAT"]
