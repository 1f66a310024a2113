from __future__ import annotations

"""
Invoice line items.

An InvoiceItem is owned by exactly one Invoice. Its only externally meaningful
mutation is being matched to a stock record, which sets the stock id, the match
type and the matched flag together.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from amazon_invoices.model.money import amounts_differ


class MatchType(str, Enum):
    auto = "auto"
    manual = "manual"
    new = "new"


class InvoiceItem(BaseModel):
    """One line of an Amazon invoice.

    Quantity and money fields are checked on construction and on assignment;
    the quantity × unit price arithmetic is only checked by validate().
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[int] = None
    line_number: int = Field(ge=1)
    product_name: str
    asin: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    total_price: float = Field(ge=0)
    tax_amount: float = Field(default=0.0, ge=0)
    fa_stock_id: Optional[str] = None
    fa_item_matched: bool = False
    match_type: Optional[MatchType] = None
    supplier_item_code: Optional[str] = None
    category_suggestion: Optional[str] = None
    notes: Optional[str] = None

    def match_to_stock(self, stock_id: str, match_type: MatchType | str = MatchType.manual) -> None:
        """Record a match against a stock record in a single step."""
        match_type = MatchType(match_type)
        self.fa_stock_id = stock_id
        self.match_type = match_type
        self.fa_item_matched = True

    def calculated_total(self) -> float:
        return self.quantity * self.unit_price

    def validate(self) -> list[str]:
        """Return advisory validation problems; empty when the line is consistent."""
        errors: list[str] = []
        if not self.product_name or not self.product_name.strip():
            errors.append("Product name is required")
        if amounts_differ(self.calculated_total(), self.total_price):
            errors.append("Total price does not match quantity × unit price")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InvoiceItem":
        return cls.model_validate(data)


__all__ = ["InvoiceItem", "MatchType"]
