"""
Read access to the host ERP stock catalog (stock_master).

The catalog is owned by the ERP; add() exists for standalone workspaces and
tests where no ERP populates it.
"""

from __future__ import annotations

from typing import Any, Optional

from amazon_invoices.storage.gateway import DatabaseGateway
from amazon_invoices.storage.schema import STOCK_TABLE

_COLUMNS = "stock_id, description, long_description, units, material_cost, supplier_reference"


class StockCatalog:
    def __init__(self, db: DatabaseGateway):
        self.db = db
        self.table = db.table(STOCK_TABLE)

    def add(
        self,
        stock_id: str,
        description: str,
        long_description: Optional[str] = None,
        units: str = "each",
        material_cost: float = 0.0,
        supplier_reference: Optional[str] = None,
    ) -> None:
        self.db.execute(
            f"INSERT INTO {self.table} ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            [stock_id, description, long_description, units, material_cost, supplier_reference],
        )

    def get(self, stock_id: str) -> Optional[dict[str, Any]]:
        return self.db.query_one(
            f"SELECT {_COLUMNS} FROM {self.table} WHERE stock_id = ? AND inactive = 0", [stock_id]
        )

    def search_words(self, words: list[str], limit: int) -> list[dict[str, Any]]:
        """Active stock rows whose description or long description contains any word."""
        if not words:
            return []
        conditions = " OR ".join("(description LIKE ? OR long_description LIKE ?)" for _ in words)
        params: list[Any] = []
        for word in words:
            params.extend([f"%{word}%", f"%{word}%"])
        params.append(limit)
        return self.db.query_all(
            f"SELECT {_COLUMNS} FROM {self.table} WHERE ({conditions}) AND inactive = 0 "
            f"ORDER BY stock_id LIMIT ?",
            params,
        )


__all__ = ["StockCatalog"]
