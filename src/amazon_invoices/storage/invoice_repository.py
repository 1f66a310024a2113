"""
Invoice repository: persistence for the Invoice aggregate.

Maps an Invoice with its items and payments onto three staging tables.
Multi-statement writes (save, delete, replace_payment) run in a single
transaction; on failure they roll back and raise RepositoryError with the
original error as the cause. Single-statement reads let storage errors
propagate unchanged.

Concurrency: last writer wins. There is no version column.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from amazon_invoices.model.invoice import TIMESTAMP_FORMAT, Invoice, InvoiceStatus
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.model.payment import Payment
from amazon_invoices.storage.errors import RepositoryError
from amazon_invoices.storage.gateway import DatabaseGateway
from amazon_invoices.storage.schema import INVOICES_TABLE, ITEMS_TABLE, PAYMENTS_TABLE

logger = logging.getLogger(__name__)

_HEADER_COLUMNS = (
    "invoice_number",
    "order_number",
    "invoice_date",
    "invoice_total",
    "tax_amount",
    "shipping_amount",
    "currency",
    "pdf_path",
    "raw_data",
    "status",
    "notes",
    "created_at",
    "processed_at",
    "fa_trans_no",
)

_ITEM_COLUMNS = (
    "staging_invoice_id",
    "line_number",
    "product_name",
    "asin",
    "sku",
    "quantity",
    "unit_price",
    "total_price",
    "tax_amount",
    "fa_stock_id",
    "fa_item_matched",
    "item_match_type",
    "supplier_item_code",
    "category_suggestion",
    "notes",
)

_PAYMENT_COLUMNS = (
    "staging_invoice_id",
    "payment_method",
    "payment_reference",
    "amount",
    "fa_bank_account",
    "fa_payment_type",
    "allocation_complete",
    "notes",
)


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(TIMESTAMP_FORMAT) if value is not None else None


def _iso(value: date | str) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat() if isinstance(value, date) else str(value)


def _placeholders(columns: Iterable[str]) -> str:
    return ", ".join("?" for _ in columns)


def _payment_params(invoice_id: int, payment: Payment) -> list[Any]:
    return [
        invoice_id,
        payment.payment_method.value,
        payment.payment_reference,
        payment.amount,
        payment.fa_bank_account,
        payment.fa_payment_type,
        1 if payment.allocation_complete else 0,
        payment.notes,
    ]


class InvoiceRepository:
    """Store and load Invoice aggregates through a DatabaseGateway.

    Usage:
        repo = InvoiceRepository(gateway)
        invoice = repo.save(invoice)          # id populated
        same = repo.find_by_id(invoice.id)
    """

    def __init__(self, db: DatabaseGateway):
        self.db = db
        self.invoices_table = db.table(INVOICES_TABLE)
        self.items_table = db.table(ITEMS_TABLE)
        self.payments_table = db.table(PAYMENTS_TABLE)

    # ------------------------------
    # Writes
    # ------------------------------

    def save(self, invoice: Invoice) -> Invoice:
        """Insert or update the invoice and replace all of its items and payments.

        Items and payments stored for the invoice are deleted and re-inserted
        from the in-memory collections; anything omitted is removed.

        Args:
            invoice: Aggregate to persist

        Returns:
            The same invoice with invoice, item and payment ids populated

        Raises:
            RepositoryError: If any statement fails (the transaction is rolled back)
        """
        original_id = invoice.id
        try:
            self.db.begin_transaction()
            if invoice.id is None:
                self.db.execute(
                    f"INSERT INTO {self.invoices_table} ({', '.join(_HEADER_COLUMNS)}) "
                    f"VALUES ({_placeholders(_HEADER_COLUMNS)})",
                    self._header_params(invoice),
                )
                invoice.id = self.db.last_insert_id()
            else:
                assignments = ", ".join(f"{col} = ?" for col in _HEADER_COLUMNS)
                self.db.execute(
                    f"UPDATE {self.invoices_table} SET {assignments} WHERE id = ?",
                    [*self._header_params(invoice), invoice.id],
                )
            self._replace_items(invoice)
            self._replace_payments(invoice)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            invoice.id = original_id
            raise RepositoryError(f"Failed to save invoice: {e}") from e

        logger.debug("Saved invoice %s (id=%s)", invoice.invoice_number, invoice.id)
        return invoice

    def update_status(
        self,
        invoice_id: int,
        status: InvoiceStatus | str,
        notes: Optional[str] = None,
        fa_trans_no: Optional[int] = None,
    ) -> bool:
        """Update the header status and stamp processed_at.

        Returns:
            True if a row was updated
        """
        status = InvoiceStatus(status)
        assignments = ["status = ?", "processed_at = ?"]
        params: list[Any] = [status.value, _timestamp(datetime.now())]
        if notes is not None:
            assignments.append("notes = ?")
            params.append(notes)
        if fa_trans_no is not None:
            assignments.append("fa_trans_no = ?")
            params.append(fa_trans_no)
        params.append(invoice_id)

        self.db.execute(
            f"UPDATE {self.invoices_table} SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        return self.db.affected_rows() > 0

    def delete(self, invoice_id: int) -> bool:
        """Delete an invoice with its payments and items.

        Returns:
            True if the invoice header was deleted

        Raises:
            RepositoryError: If any statement fails (the transaction is rolled back)
        """
        try:
            self.db.begin_transaction()
            self.db.execute(
                f"DELETE FROM {self.payments_table} WHERE staging_invoice_id = ?", [invoice_id]
            )
            self.db.execute(
                f"DELETE FROM {self.items_table} WHERE staging_invoice_id = ?", [invoice_id]
            )
            self.db.execute(f"DELETE FROM {self.invoices_table} WHERE id = ?", [invoice_id])
            deleted = self.db.affected_rows() > 0
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            raise RepositoryError(f"Failed to delete invoice: {e}") from e
        return deleted

    def update_payment_allocation(
        self,
        payment_id: int,
        bank_account: int,
        payment_type: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Allocate one payment row to a bank account and payment type.

        Returns:
            True if a row was updated
        """
        assignments = ["fa_bank_account = ?", "fa_payment_type = ?", "allocation_complete = 1"]
        params: list[Any] = [bank_account, payment_type]
        if notes is not None:
            assignments.append("notes = ?")
            params.append(notes)
        params.append(payment_id)

        self.db.execute(
            f"UPDATE {self.payments_table} SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        return self.db.affected_rows() > 0

    def replace_payment(self, payment_id: int, invoice_id: int, parts: Sequence[Payment]) -> list[Payment]:
        """Delete one payment row and insert the given parts in its place.

        Returns:
            The parts with their ids populated

        Raises:
            RepositoryError: If any statement fails (the transaction is rolled back)
        """
        insert = (
            f"INSERT INTO {self.payments_table} ({', '.join(_PAYMENT_COLUMNS)}) "
            f"VALUES ({_placeholders(_PAYMENT_COLUMNS)})"
        )
        try:
            self.db.begin_transaction()
            self.db.execute(f"DELETE FROM {self.payments_table} WHERE id = ?", [payment_id])
            for part in parts:
                self.db.execute(insert, _payment_params(invoice_id, part))
                part.id = self.db.last_insert_id()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            for part in parts:
                part.id = None
            raise RepositoryError(f"Failed to split payment: {e}") from e
        return list(parts)

    # ------------------------------
    # Reads
    # ------------------------------

    def find_payment(self, payment_id: int) -> Optional[tuple[int, Payment]]:
        """The owning invoice id and the payment, or None."""
        row = self.db.query_one(f"SELECT * FROM {self.payments_table} WHERE id = ?", [payment_id])
        return (row["staging_invoice_id"], payment_from_row(row)) if row else None

    def find_by_id(self, invoice_id: int) -> Optional[Invoice]:
        row = self.db.query_one(f"SELECT * FROM {self.invoices_table} WHERE id = ?", [invoice_id])
        return self._hydrate(row) if row else None

    def find_by_invoice_number(self, invoice_number: str) -> Optional[Invoice]:
        row = self.db.query_one(
            f"SELECT * FROM {self.invoices_table} WHERE invoice_number = ?", [invoice_number]
        )
        return self._hydrate(row) if row else None

    def exists_by_invoice_number(self, invoice_number: str) -> bool:
        row = self.db.query_one(
            f"SELECT COUNT(*) AS n FROM {self.invoices_table} WHERE invoice_number = ?",
            [invoice_number],
        )
        return bool(row and row["n"] > 0)

    def find_by_status(self, status: InvoiceStatus | str, limit: Optional[int] = None) -> list[Invoice]:
        return self.find_all({"status": status}, limit=limit)

    def find_by_date_range(
        self, start: date | str, end: date | str, limit: Optional[int] = None
    ) -> list[Invoice]:
        """Invoices dated within [start, end], newest invoice date first."""
        query = (
            f"SELECT * FROM {self.invoices_table} WHERE invoice_date BETWEEN ? AND ? "
            f"ORDER BY invoice_date DESC, id DESC"
        )
        params: list[Any] = [_iso(start), _iso(end)]
        query, params = self._paginate(query, params, limit, None)
        return [self._hydrate(row) for row in self.db.query_all(query, params)]

    def find_all(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[Invoice]:
        """Invoices matching the filters, most recently created first.

        Supported filters: status (exact), date_from / date_to (inclusive,
        on invoice date) and order_number (substring).
        """
        where, params = self._where(filters)
        query = f"SELECT * FROM {self.invoices_table}{where} ORDER BY created_at DESC, id DESC"
        query, params = self._paginate(query, params, limit, offset)
        return [self._hydrate(row) for row in self.db.query_all(query, params)]

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        where, params = self._where(filters)
        row = self.db.query_one(f"SELECT COUNT(*) AS n FROM {self.invoices_table}{where}", params)
        return int(row["n"]) if row else 0

    def pending_summaries(self, limit: int = 50) -> list[dict[str, Any]]:
        """Header rows of pending invoices with item count and items total."""
        return self.db.query_all(
            f"""
            SELECT i.id, i.invoice_number, i.order_number, i.invoice_date,
                   i.invoice_total, i.currency, i.status, i.created_at,
                   COUNT(it.id) AS item_count,
                   COALESCE(SUM(it.total_price), 0) AS items_total
            FROM {self.invoices_table} i
            LEFT JOIN {self.items_table} it ON it.staging_invoice_id = i.id
            WHERE i.status = ?
            GROUP BY i.id
            ORDER BY i.created_at DESC, i.id DESC
            LIMIT ?
            """,
            [InvoiceStatus.pending.value, limit],
        )

    def count_by_status(self, since_days: Optional[int] = None) -> dict[str, int]:
        """Number of invoices per status, optionally only those created recently."""
        query = f"SELECT status, COUNT(*) AS n FROM {self.invoices_table}"
        params: list[Any] = []
        if since_days is not None:
            query += " WHERE created_at >= datetime('now', 'localtime', ?)"
            params.append(f"-{int(since_days)} days")
        query += " GROUP BY status"
        return {row["status"]: int(row["n"]) for row in self.db.query_all(query, params)}

    def find_candidates(
        self, *, order_number: str | None = None, invoice_number: str | None = None,
        invoice_date: date | None = None, total_between: tuple[float, float] | None = None,
        exclude_id: int | None = None,
    ) -> list[Invoice]:
        """Lookup used by duplicate detection; every given criterion must match."""
        clauses: list[str] = []
        params: list[Any] = []
        if order_number is not None:
            clauses.append("order_number = ?")
            params.append(order_number)
        if invoice_number is not None:
            clauses.append("invoice_number = ?")
            params.append(invoice_number)
        if invoice_date is not None:
            clauses.append("invoice_date = ?")
            params.append(_iso(invoice_date))
        if total_between is not None:
            clauses.append("invoice_total BETWEEN ? AND ?")
            params.extend(total_between)
        if exclude_id is not None:
            clauses.append("id != ?")
            params.append(exclude_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.query_all(
            f"SELECT * FROM {self.invoices_table}{where} ORDER BY created_at DESC, id DESC", params
        )
        return [self._hydrate(row) for row in rows]

    # ------------------------------
    # Internals
    # ------------------------------

    def _where(self, filters: Optional[Mapping[str, Any]]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        filters = filters or {}
        if filters.get("status"):
            clauses.append("status = ?")
            params.append(InvoiceStatus(filters["status"]).value)
        if filters.get("date_from"):
            clauses.append("invoice_date >= ?")
            params.append(_iso(filters["date_from"]))
        if filters.get("date_to"):
            clauses.append("invoice_date <= ?")
            params.append(_iso(filters["date_to"]))
        if filters.get("order_number"):
            clauses.append("order_number LIKE ?")
            params.append(f"%{filters['order_number']}%")
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    @staticmethod
    def _paginate(
        query: str, params: list[Any], limit: Optional[int], offset: Optional[int]
    ) -> tuple[str, list[Any]]:
        if limit is None and offset is None:
            return query, params
        query += " LIMIT ?"
        params = [*params, limit if limit is not None else -1]
        if offset is not None:
            query += " OFFSET ?"
            params.append(offset)
        return query, params

    @staticmethod
    def _header_params(invoice: Invoice) -> list[Any]:
        return [
            invoice.invoice_number,
            invoice.order_number,
            invoice.invoice_date.isoformat(),
            invoice.total_amount,
            invoice.tax_amount,
            invoice.shipping_amount,
            invoice.currency,
            invoice.pdf_path,
            invoice.raw_data,
            invoice.status.value,
            invoice.notes,
            _timestamp(invoice.created_at),
            _timestamp(invoice.processed_at),
            invoice.fa_transaction_number,
        ]

    def _replace_items(self, invoice: Invoice) -> None:
        self.db.execute(f"DELETE FROM {self.items_table} WHERE staging_invoice_id = ?", [invoice.id])
        insert = (
            f"INSERT INTO {self.items_table} ({', '.join(_ITEM_COLUMNS)}) "
            f"VALUES ({_placeholders(_ITEM_COLUMNS)})"
        )
        for item in invoice.items:
            self.db.execute(
                insert,
                [
                    invoice.id,
                    item.line_number,
                    item.product_name,
                    item.asin,
                    item.sku,
                    item.quantity,
                    item.unit_price,
                    item.total_price,
                    item.tax_amount,
                    item.fa_stock_id,
                    1 if item.fa_item_matched else 0,
                    item.match_type.value if item.match_type else None,
                    item.supplier_item_code,
                    item.category_suggestion,
                    item.notes,
                ],
            )
            item.id = self.db.last_insert_id()

    def _replace_payments(self, invoice: Invoice) -> None:
        self.db.execute(
            f"DELETE FROM {self.payments_table} WHERE staging_invoice_id = ?", [invoice.id]
        )
        insert = (
            f"INSERT INTO {self.payments_table} ({', '.join(_PAYMENT_COLUMNS)}) "
            f"VALUES ({_placeholders(_PAYMENT_COLUMNS)})"
        )
        for payment in invoice.payments:
            self.db.execute(insert, _payment_params(invoice.id, payment))
            payment.id = self.db.last_insert_id()

    def _hydrate(self, row: dict[str, Any]) -> Invoice:
        invoice_id = row["id"]
        item_rows = self.db.query_all(
            f"SELECT * FROM {self.items_table} WHERE staging_invoice_id = ? ORDER BY line_number",
            [invoice_id],
        )
        payment_rows = self.db.query_all(
            f"SELECT * FROM {self.payments_table} WHERE staging_invoice_id = ? ORDER BY id", [invoice_id]
        )
        return Invoice(
            id=invoice_id,
            invoice_number=row["invoice_number"],
            order_number=row["order_number"],
            invoice_date=row["invoice_date"],
            total_amount=row["invoice_total"],
            tax_amount=row["tax_amount"] or 0.0,
            shipping_amount=row["shipping_amount"] or 0.0,
            currency=row["currency"],
            pdf_path=row["pdf_path"],
            raw_data=row["raw_data"],
            status=row["status"],
            notes=row["notes"],
            created_at=row["created_at"],
            processed_at=row["processed_at"],
            fa_transaction_number=row["fa_trans_no"],
            items=[item_from_row(r) for r in item_rows],
            payments=[payment_from_row(r) for r in payment_rows],
        )


def item_from_row(row: Mapping[str, Any]) -> InvoiceItem:
    return InvoiceItem(
        id=row["id"],
        line_number=row["line_number"],
        product_name=row["product_name"],
        asin=row["asin"],
        sku=row["sku"],
        quantity=row["quantity"],
        unit_price=row["unit_price"],
        total_price=row["total_price"],
        tax_amount=row["tax_amount"] or 0.0,
        fa_stock_id=row["fa_stock_id"],
        fa_item_matched=bool(row["fa_item_matched"]),
        match_type=row["item_match_type"],
        supplier_item_code=row["supplier_item_code"],
        category_suggestion=row["category_suggestion"],
        notes=row["notes"],
    )


def payment_from_row(row: Mapping[str, Any]) -> Payment:
    return Payment(
        id=row["id"],
        payment_method=row["payment_method"],
        payment_reference=row["payment_reference"],
        amount=row["amount"],
        fa_bank_account=row["fa_bank_account"],
        fa_payment_type=row["fa_payment_type"],
        allocation_complete=bool(row["allocation_complete"]),
        notes=row["notes"],
    )


__all__ = ["InvoiceRepository", "item_from_row", "payment_from_row"]
