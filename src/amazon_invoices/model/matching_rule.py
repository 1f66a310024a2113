from __future__ import annotations

"""Persisted item-matching rules and stock suggestions."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# Tier order used by the matching service. Rule rows may carry other values;
# they are stored as given and simply never selected by any tier.
RULE_TYPES = ("asin", "sku", "product_name", "keyword")


class MatchingRule(BaseModel):
    """Mapping from a product pattern to a stock record, tried in priority order."""

    id: Optional[int] = None
    match_type: str
    match_value: str
    fa_stock_id: str
    priority: int = 1
    active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    stock_description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MatchingRule":
        return cls(
            id=row["id"],
            match_type=row["match_type"],
            match_value=row["match_value"],
            fa_stock_id=row["fa_stock_id"],
            priority=row["priority"],
            active=bool(row["active"]),
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
            stock_description=row.get("stock_description"),
        )


class StockSuggestion(BaseModel):
    """A ranked candidate stock record for a product name."""

    stock_id: str
    description: str
    long_description: Optional[str] = None
    units: Optional[str] = None
    material_cost: Optional[float] = None
    confidence: int = Field(ge=0, le=100)


__all__ = ["MatchingRule", "RULE_TYPES", "StockSuggestion"]
