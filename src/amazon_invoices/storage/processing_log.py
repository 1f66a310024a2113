"""
Append-only processing log and processed-source registry.

Every import, match and status change is recorded against the staging
invoice it concerns, together with the actor that performed it. The source
registry remembers which PDF files (by content hash) and e-mails (by message
id) have already been handled so repeated runs report them as duplicates.
"""

from __future__ import annotations

from typing import Any, Optional

from amazon_invoices.storage.gateway import DatabaseGateway
from amazon_invoices.storage.schema import LOG_TABLE, SOURCES_TABLE

SOURCE_PDF = "pdf"
SOURCE_EMAIL = "email"


class ProcessingLog:
    """Audit trail for staging invoices."""

    def __init__(self, db: DatabaseGateway):
        self.db = db
        self.log_table = db.table(LOG_TABLE)
        self.sources_table = db.table(SOURCES_TABLE)

    def add(
        self,
        invoice_id: Optional[int],
        action: str,
        details: str = "",
        *,
        actor: str,
    ) -> int:
        """Append a log entry and return its id."""
        self.db.execute(
            f"INSERT INTO {self.log_table} (staging_invoice_id, action, details, user_id) "
            f"VALUES (?, ?, ?, ?)",
            [invoice_id, action, details, actor],
        )
        return self.db.last_insert_id()

    def for_invoice(self, invoice_id: int) -> list[dict[str, Any]]:
        return self.db.query_all(
            f"SELECT * FROM {self.log_table} WHERE staging_invoice_id = ? ORDER BY id",
            [invoice_id],
        )

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        return self.db.query_all(
            f"SELECT * FROM {self.log_table} ORDER BY created_at DESC, id DESC LIMIT ?", [limit]
        )

    def count_since(self, days: int, action: Optional[str] = None) -> int:
        query = (
            f"SELECT COUNT(*) AS n FROM {self.log_table} "
            f"WHERE created_at >= datetime('now', 'localtime', ?)"
        )
        params: list[Any] = [f"-{int(days)} days"]
        if action is not None:
            query += " AND action = ?"
            params.append(action)
        row = self.db.query_one(query, params)
        return int(row["n"]) if row else 0

    def cleanup(self, days: int) -> int:
        """Delete log entries older than the given number of days.

        Returns:
            Number of entries removed
        """
        self.db.execute(
            f"DELETE FROM {self.log_table} WHERE created_at < datetime('now', 'localtime', ?)",
            [f"-{int(days)} days"],
        )
        return self.db.affected_rows()

    # ------------------------------
    # Processed sources
    # ------------------------------

    def is_source_processed(self, kind: str, key: str) -> bool:
        row = self.db.query_one(
            f"SELECT COUNT(*) AS n FROM {self.sources_table} WHERE source_kind = ? AND source_key = ?",
            [kind, key],
        )
        return bool(row and row["n"] > 0)

    def mark_source_processed(
        self,
        kind: str,
        key: str,
        status: str,
        invoice_id: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        self.db.execute(
            f"INSERT OR REPLACE INTO {self.sources_table} "
            f"(source_kind, source_key, status, staging_invoice_id, details) VALUES (?, ?, ?, ?, ?)",
            [kind, key, status, invoice_id, details],
        )

    def source_stats(self, kind: str, days: int) -> dict[str, int]:
        """Counts of processed sources per status within the window."""
        rows = self.db.query_all(
            f"SELECT status, COUNT(*) AS n FROM {self.sources_table} "
            f"WHERE source_kind = ? AND processed_at >= datetime('now', 'localtime', ?) "
            f"GROUP BY status",
            [kind, f"-{int(days)} days"],
        )
        return {row["status"]: int(row["n"]) for row in rows}

    def cleanup_sources(self, days: int) -> int:
        self.db.execute(
            f"DELETE FROM {self.sources_table} WHERE processed_at < datetime('now', 'localtime', ?)",
            [f"-{int(days)} days"],
        )
        return self.db.affected_rows()


__all__ = ["ProcessingLog", "SOURCE_EMAIL", "SOURCE_PDF"]
