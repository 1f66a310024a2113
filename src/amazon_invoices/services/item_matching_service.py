"""
Item matching service - resolves Amazon line items to stock records.

Resolution walks four tiers of active matching rules in fixed order:
ASIN, SKU, exact product name, then keyword (the rule value appears anywhere
in the product name). Within a tier the lowest priority number wins. The
keyword tier uses SQL LIKE, which SQLite evaluates case-insensitively for
ASCII text.

Rule types are stored as given; values outside the four tiers are accepted
and never selected.

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer

All dependencies are injected. Every mutating call takes the acting user
explicitly.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from amazon_invoices.ml.name_similarity import ProductNameScorer, clean_product_name
from amazon_invoices.model.invoice_item import InvoiceItem, MatchType
from amazon_invoices.model.matching_rule import MatchingRule, StockSuggestion
from amazon_invoices.model.settings import MatchingSettings
from amazon_invoices.storage.gateway import DatabaseGateway
from amazon_invoices.storage.processing_log import ProcessingLog
from amazon_invoices.storage.schema import HISTORY_TABLE, ITEMS_TABLE, RULES_TABLE, STOCK_TABLE
from amazon_invoices.storage.stock_catalog import StockCatalog

logger = logging.getLogger(__name__)

_EXACT_TIERS = ("asin", "sku", "product_name")


class ItemMatchingService:
    """Rule-driven stock matching for staged invoice items.

    Responsibilities:
    - Resolve (asin, sku, product name) to a stock id
    - Manage matching rules
    - Auto-match the unmatched items of an invoice
    - Record manual matches and learn rules from them
    - Rank stock suggestions for a product name
    """

    def __init__(
        self,
        db: DatabaseGateway,
        log: ProcessingLog | None = None,
        settings: MatchingSettings | None = None,
        scorer: ProductNameScorer | None = None,
    ):
        self.db = db
        self.log = log or ProcessingLog(db)
        self.settings = settings or MatchingSettings()
        self.scorer = scorer or ProductNameScorer()
        self.catalog = StockCatalog(db)
        self.rules_table = db.table(RULES_TABLE)
        self.items_table = db.table(ITEMS_TABLE)
        self.history_table = db.table(HISTORY_TABLE)
        self.stock_table = db.table(STOCK_TABLE)

    # ------------------------------
    # Resolution
    # ------------------------------

    def find_matching_stock_item(
        self, asin: Optional[str], sku: Optional[str], product_name: str
    ) -> Optional[str]:
        """Return the stock id of the first rule hit across the four tiers.

        The ASIN and SKU tiers are skipped when the identifier is empty.

        Args:
            asin: Amazon Standard Identification Number, if known
            sku: Seller SKU, if known
            product_name: Product title as printed on the invoice

        Returns:
            Stock id, or None when no tier matches
        """
        for match_type, value in zip(_EXACT_TIERS, (asin, sku, product_name)):
            if not value:
                continue
            row = self.db.query_one(
                f"SELECT fa_stock_id FROM {self.rules_table} "
                f"WHERE match_type = ? AND match_value = ? AND active = 1 "
                f"ORDER BY priority, id LIMIT 1",
                [match_type, value],
            )
            if row:
                return row["fa_stock_id"]

        if not product_name:
            return None
        row = self.db.query_one(
            f"SELECT fa_stock_id FROM {self.rules_table} "
            f"WHERE match_type = 'keyword' AND active = 1 "
            f"AND ? LIKE '%' || match_value || '%' "
            f"ORDER BY priority, id LIMIT 1",
            [product_name],
        )
        return row["fa_stock_id"] if row else None

    # ------------------------------
    # Rules
    # ------------------------------

    def add_matching_rule(
        self,
        match_type: str,
        match_value: str,
        stock_id: str,
        priority: int = 1,
        *,
        actor: str,
    ) -> int:
        """Insert an active rule and return its id."""
        self.db.execute(
            f"INSERT INTO {self.rules_table} "
            f"(match_type, match_value, fa_stock_id, priority, active, created_by) "
            f"VALUES (?, ?, ?, ?, 1, ?)",
            [match_type, match_value, stock_id, priority, actor],
        )
        rule_id = self.db.last_insert_id()
        logger.info("Rule %s added by %s: %s=%r -> %s", rule_id, actor, match_type, match_value, stock_id)
        return rule_id

    def get_matching_rules(self, active_only: bool = True) -> list[MatchingRule]:
        where = "WHERE r.active = 1" if active_only else ""
        rows = self.db.query_all(
            f"SELECT r.*, s.description AS stock_description "
            f"FROM {self.rules_table} r "
            f"LEFT JOIN {self.stock_table} s ON r.fa_stock_id = s.stock_id "
            f"{where} "
            f"ORDER BY r.priority, r.match_type, r.match_value"
        )
        return [MatchingRule.from_row(row) for row in rows]

    def update_rule_status(self, rule_id: int, active: bool) -> bool:
        self.db.execute(
            f"UPDATE {self.rules_table} SET active = ? WHERE id = ?", [1 if active else 0, rule_id]
        )
        return self.db.affected_rows() > 0

    def delete_rule(self, rule_id: int) -> bool:
        self.db.execute(f"DELETE FROM {self.rules_table} WHERE id = ?", [rule_id])
        return self.db.affected_rows() > 0

    # ------------------------------
    # Matching invoice items
    # ------------------------------

    def auto_match_invoice_items(self, invoice_id: int, *, actor: str) -> int:
        """Match every not-yet-matched item of an invoice against the rules.

        Already matched items are left untouched.

        Returns:
            Number of items matched in this pass
        """
        rows = self.db.query_all(
            f"SELECT * FROM {self.items_table} "
            f"WHERE staging_invoice_id = ? AND fa_item_matched = 0 ORDER BY line_number",
            [invoice_id],
        )

        matched = 0
        for row in rows:
            stock_id = self.find_matching_stock_item(row["asin"], row["sku"], row["product_name"])
            if not stock_id:
                continue
            self._record_match(row, stock_id, MatchType.auto, actor=actor, confidence=100)
            self.log.add(
                invoice_id,
                "item_auto_matched",
                f"Item '{row['product_name']}' auto-matched to stock ID: {stock_id}",
                actor=actor,
            )
            matched += 1

        if matched:
            logger.info("Auto-matched %d item(s) on invoice %s", matched, invoice_id)
        return matched

    def match_item(
        self,
        item_id: int,
        stock_id: str,
        *,
        actor: str,
        match_type: MatchType | str = MatchType.manual,
        learn: bool = True,
    ) -> bool:
        """Match a single staged item to a stock record.

        Manual matches teach the rule set: an ASIN rule (priority 1) and a SKU
        rule (priority 2) are added for the item's identifiers when learn is set.

        Returns:
            False when the item does not exist
        """
        match_type = MatchType(match_type)
        row = self.db.query_one(f"SELECT * FROM {self.items_table} WHERE id = ?", [item_id])
        if row is None:
            return False

        self._record_match(row, stock_id, match_type, actor=actor, confidence=100)

        if learn and match_type == MatchType.manual:
            if row["asin"]:
                self.add_matching_rule("asin", row["asin"], stock_id, 1, actor=actor)
            if row["sku"]:
                self.add_matching_rule("sku", row["sku"], stock_id, 2, actor=actor)

        self.log.add(
            row["staging_invoice_id"],
            "item_manually_matched" if match_type == MatchType.manual else f"item_{match_type.value}_matched",
            f"Item '{row['product_name']}' matched to stock ID: {stock_id}",
            actor=actor,
        )
        return True

    def _record_match(
        self,
        row: Mapping[str, Any],
        stock_id: str,
        match_type: MatchType,
        *,
        actor: str,
        confidence: int,
    ) -> None:
        self.db.begin_transaction()
        try:
            self.db.execute(
                f"UPDATE {self.items_table} "
                f"SET fa_stock_id = ?, fa_item_matched = 1, item_match_type = ? WHERE id = ?",
                [stock_id, match_type.value, row["id"]],
            )
            self.db.execute(
                f"INSERT INTO {self.history_table} "
                f"(item_id, asin, sku, product_name, fa_stock_id, match_type, confidence, created_by) "
                f"VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [row["id"], row["asin"], row["sku"], row["product_name"], stock_id,
                 match_type.value, confidence, actor],
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get_matching_history(
        self, filters: Optional[Mapping[str, Any]] = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        """Recorded matches, newest first; filter by asin, stock_id or match_type."""
        clauses: list[str] = []
        params: list[Any] = []
        filters = filters or {}
        for key, column in (("asin", "h.asin"), ("stock_id", "h.fa_stock_id"), ("match_type", "h.match_type")):
            if filters.get(key):
                clauses.append(f"{column} = ?")
                params.append(filters[key])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        return self.db.query_all(
            f"SELECT h.*, s.description AS stock_description "
            f"FROM {self.history_table} h "
            f"LEFT JOIN {self.stock_table} s ON h.fa_stock_id = s.stock_id "
            f"{where} ORDER BY h.created_at DESC, h.id DESC LIMIT ?",
            params,
        )

    # ------------------------------
    # Suggestions
    # ------------------------------

    def get_suggested_stock_items(self, product_name: str, limit: int = 10) -> list[StockSuggestion]:
        """Rank stock records for a product name, best first.

        A product-name or keyword rule hit is listed first with full
        confidence. Other candidates share at least one significant word with
        the cleaned name and are kept when their similarity reaches
        min_name_confidence. Ties are broken by stock id.
        """
        suggestions: dict[str, StockSuggestion] = {}

        rule_hit = self.find_matching_stock_item(None, None, product_name)
        if rule_hit:
            row = self.catalog.get(rule_hit)
            if row:
                suggestions[rule_hit] = StockSuggestion(confidence=100, **_suggestion_fields(row))

        words = [w for w in clean_product_name(product_name).split() if len(w) > 2]
        candidates = self.catalog.search_words(words, max(limit * 2, 20))
        if candidates:
            corpus = [product_name]
            for row in candidates:
                corpus.append(row["description"])
                if row["long_description"]:
                    corpus.append(row["long_description"])
            self.scorer.fit(corpus)

        for row in candidates:
            if row["stock_id"] in suggestions:
                continue
            confidence = self.scorer.confidence(product_name, row["description"], row["long_description"])
            if confidence >= self.settings.min_name_confidence:
                suggestions[row["stock_id"]] = StockSuggestion(confidence=confidence, **_suggestion_fields(row))

        ranked = sorted(suggestions.values(), key=lambda s: (-s.confidence, s.stock_id))
        return ranked[:limit]

    def suggest_new_item(self, item: InvoiceItem) -> dict[str, Any]:
        """Propose stock master fields for an item with no existing match."""
        cleaned = clean_product_name(item.product_name)
        return {
            "stock_id": self._generate_stock_id(item, cleaned),
            "description": cleaned,
            "long_description": item.product_name,
            "category_id": self._suggest_category(item.product_name),
            "units": "each" if item.quantity == 1 else "pcs",
            "material_cost": item.unit_price,
            "purchase_account": self.settings.default_purchase_account,
            "cogs_account": self.settings.default_cogs_account,
            "inventory_account": self.settings.default_inventory_account,
            "adjustment_account": self.settings.default_adjustment_account,
            "assembly_account": self.settings.default_assembly_account,
            "supplier_code": item.asin or item.sku,
            "supplier_reference": item.asin,
            "inactive": 0,
        }

    @staticmethod
    def _generate_stock_id(item: InvoiceItem, cleaned_name: str) -> str:
        if item.asin:
            return item.asin
        if item.sku:
            return item.sku
        acronym = "".join(w[:3].upper() for w in cleaned_name.split()[:3] if len(w) > 2)
        return acronym or "AMZ" + datetime.now().strftime("%Y%m%d%H%M%S")

    def _suggest_category(self, product_name: str) -> Optional[int]:
        name = product_name.lower()
        for keyword, category_id in self.settings.category_mappings.items():
            if keyword in name:
                return category_id
        return self.settings.default_category_id


def _suggestion_fields(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "stock_id": row["stock_id"],
        "description": row["description"],
        "long_description": row.get("long_description"),
        "units": row.get("units"),
        "material_cost": row.get("material_cost"),
    }


__all__ = ["ItemMatchingService"]
