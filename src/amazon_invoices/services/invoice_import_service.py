"""
Invoice import service - drives invoices from any source into staging.

Per invoice the pipeline is: duplicate check, save (status pending), log entry,
optional auto-match. Validation is advisory: problems come back as warnings on
the result and never block the save.

Batch calls never raise for a single bad invoice; the failure becomes a result
entry with success=False and the remaining invoices are still processed.

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer

All dependencies are injected. Every mutating call takes the acting user
explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from amazon_invoices.model.invoice import Invoice, InvoiceStatus
from amazon_invoices.model.money import amounts_differ
from amazon_invoices.model.payment import Payment, PaymentMethod
from amazon_invoices.model.settings import Settings
from amazon_invoices.services.duplicate_detection_service import (
    DuplicateDetectionService,
    DuplicateMatch,
)
from amazon_invoices.services.errors import AllocationError
from amazon_invoices.services.item_matching_service import ItemMatchingService
from amazon_invoices.storage.gateway import DatabaseGateway
from amazon_invoices.storage.invoice_repository import InvoiceRepository
from amazon_invoices.storage.processing_log import SOURCE_EMAIL, SOURCE_PDF, ProcessingLog

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_DUPLICATE = "duplicate"
STATUS_DUPLICATE_INVOICE = "duplicate_invoice"
STATUS_NO_INVOICE_DATA = "no_invoice_data"
STATUS_ERROR = "error"


@dataclass
class ImportResult:
    """Outcome of importing one invoice, file or e-mail."""

    status: str
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    message: str = ""
    error: Optional[str] = None
    source: Optional[str] = None
    duplicate: Optional[DuplicateMatch] = None
    matched_items: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "message": self.message,
        }
        if self.invoice_id is not None:
            data["invoice_id"] = self.invoice_id
        if self.invoice_number is not None:
            data["invoice_number"] = self.invoice_number
        if self.error is not None:
            data["error"] = self.error
        if self.source is not None:
            data["source"] = self.source
        if self.duplicate is not None:
            data["duplicate_of"] = self.duplicate.to_dict()
        if self.matched_items:
            data["matched_items"] = self.matched_items
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


@dataclass
class PaymentSplit:
    """One part of a payment being split across bank accounts."""

    amount: float
    bank_account: int
    payment_type: Optional[int] = None


def success_rate(successful: int, total: int) -> float:
    """Percentage rounded to two decimals; 0 when nothing was attempted."""
    if total <= 0:
        return 0.0
    return round(successful / total * 100, 2)


class InvoiceImportService:
    """Staging pipeline shared by the sample downloader, PDF and e-mail imports."""

    def __init__(
        self,
        db: DatabaseGateway,
        settings: Settings | None = None,
        repository: InvoiceRepository | None = None,
        log: ProcessingLog | None = None,
        duplicates: DuplicateDetectionService | None = None,
        matcher: ItemMatchingService | None = None,
    ):
        self.db = db
        self.settings = settings or Settings()
        self.repository = repository or InvoiceRepository(db)
        self.log = log or ProcessingLog(db)
        self.duplicates = duplicates or DuplicateDetectionService(self.repository)
        self.matcher = matcher or ItemMatchingService(db, self.log, self.settings.matching)

    # ------------------------------
    # Import
    # ------------------------------

    def import_invoice(self, invoice: Invoice, *, actor: str, source: str = "amazon") -> ImportResult:
        """Stage one invoice.

        Raises:
            RepositoryError: If the save fails
        """
        duplicate = self.duplicates.find_duplicate_invoice(invoice)
        if duplicate is not None:
            logger.info(
                "Skipping %s: duplicate of invoice %s (%s, %d%%)",
                invoice.invoice_number, duplicate.invoice_id, duplicate.criteria, duplicate.confidence,
            )
            return ImportResult(
                status=STATUS_DUPLICATE_INVOICE,
                invoice_id=duplicate.invoice_id,
                invoice_number=invoice.invoice_number,
                message=f"Duplicate of invoice {duplicate.invoice_number} ({duplicate.criteria})",
                source=source,
                duplicate=duplicate,
            )

        warnings = invoice.validate()
        invoice.status = InvoiceStatus.pending
        self.repository.save(invoice)
        logger.info("Imported invoice %s from %s (id=%s)", invoice.invoice_number, source, invoice.id)

        # The invoice is staged from here on; later failures only become warnings.
        matched = 0
        try:
            self.log.add(invoice.id, "imported", "Invoice imported from Amazon", actor=actor)
            if self.settings.auto_process:
                matched = self.auto_match(invoice.id, actor=actor)
        except Exception as e:
            logger.warning(
                "Post-import step failed for invoice %s (id=%s): %s",
                invoice.invoice_number, invoice.id, e, exc_info=True,
            )
            warnings.append(f"Post-import processing failed: {e}")

        return ImportResult(
            status=STATUS_SUCCESS,
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            message="Invoice imported successfully",
            source=source,
            matched_items=matched,
            warnings=warnings,
        )

    def import_invoices(
        self, invoices: Iterable[Invoice], *, actor: str, source: str = "amazon"
    ) -> list[ImportResult]:
        """Stage a batch; one result per invoice, in input order."""
        results: list[ImportResult] = []
        for invoice in invoices:
            try:
                results.append(self.import_invoice(invoice, actor=actor, source=source))
            except Exception as e:
                logger.error("Failed to import invoice %s: %s", invoice.invoice_number, e, exc_info=True)
                results.append(
                    ImportResult(
                        status=STATUS_ERROR,
                        invoice_number=invoice.invoice_number,
                        message="Import failed",
                        error=str(e),
                        source=source,
                    )
                )
        return results

    def auto_match(self, invoice_id: int, *, actor: str) -> int:
        """Auto-match an invoice's items; promote it to matched once every item is.

        Returns:
            Number of items matched in this pass
        """
        matched = self.matcher.auto_match_invoice_items(invoice_id, actor=actor)
        invoice = self.repository.find_by_id(invoice_id)
        if (
            invoice is not None
            and invoice.items
            and invoice.all_items_matched()
            and invoice.status in (InvoiceStatus.pending, InvoiceStatus.processing)
        ):
            self.repository.update_status(invoice_id, InvoiceStatus.matched)
            self.log.add(invoice_id, "status_changed", "All items matched", actor=actor)
        return matched

    # ------------------------------
    # Review
    # ------------------------------

    def validate_invoice_data(self, invoice_id: int) -> list[str]:
        """Problems that stand between a staged invoice and posting."""
        invoice = self.repository.find_by_id(invoice_id)
        if invoice is None:
            return ["Invoice not found"]

        errors: list[str] = []
        unmatched = invoice.unmatched_item_count()
        if unmatched:
            errors.append(f"Invoice has {unmatched} unmatched items")
        unallocated = invoice.unallocated_payment_count()
        if unallocated:
            errors.append(f"Invoice has {unallocated} unallocated payments")
        if amounts_differ(invoice.total_amount, invoice.items_total()):
            errors.append("Invoice total doesn't match sum of items")
        if amounts_differ(invoice.total_amount, invoice.payments_total()):
            errors.append("Invoice total doesn't match sum of payments")
        return errors

    def get_pending_invoices(self, limit: int = 100) -> list[dict[str, Any]]:
        return self.repository.pending_summaries(limit)

    def get_invoice_details(self, invoice_id: int) -> Optional[dict[str, Any]]:
        """Invoice as a dict with items, payments and its processing log."""
        invoice = self.repository.find_by_id(invoice_id)
        if invoice is None:
            return None
        details = invoice.to_dict()
        details["log"] = self.log.for_invoice(invoice_id)
        return details

    def mark_invoice_as_processed(
        self,
        invoice_id: int,
        *,
        actor: str,
        notes: Optional[str] = None,
        fa_trans_no: Optional[int] = None,
    ) -> bool:
        """Set the invoice to completed.

        Returns:
            False when no such invoice exists
        """
        updated = self.repository.update_status(
            invoice_id, InvoiceStatus.completed, notes=notes, fa_trans_no=fa_trans_no
        )
        if updated:
            detail = "Invoice marked as processed"
            if fa_trans_no is not None:
                detail += f" (FA transaction {fa_trans_no})"
            self.log.add(invoice_id, "processed", detail, actor=actor)
        return updated

    # ------------------------------
    # Payments
    # ------------------------------

    def allocate_payment(
        self,
        payment_id: int,
        bank_account: int,
        payment_type: Optional[int] = None,
        notes: Optional[str] = None,
        *,
        actor: str,
    ) -> bool:
        """Allocate one payment to a FrontAccounting bank account.

        Returns:
            False when no such payment exists
        """
        found = self.repository.find_payment(payment_id)
        if found is None:
            return False
        invoice_id, payment = found
        payment.allocate(bank_account, payment_type, notes)
        self.repository.update_payment_allocation(
            payment_id, payment.fa_bank_account, payment.fa_payment_type, notes
        )
        self.log.add(
            invoice_id,
            "payment_allocated",
            f"Payment allocated to bank account: {bank_account}",
            actor=actor,
        )
        logger.info("Allocated payment %s of invoice %s to bank account %s", payment_id, invoice_id, bank_account)
        return True

    def split_payment(self, payment_id: int, parts: Sequence[PaymentSplit], *, actor: str) -> list[Payment]:
        """Replace one payment with allocated parts that add up to its amount.

        Returns:
            The stored split payments

        Raises:
            AllocationError: If the payment is unknown or the parts are invalid
            RepositoryError: If the replacement fails
        """
        found = self.repository.find_payment(payment_id)
        if found is None:
            raise AllocationError(f"Payment not found: {payment_id}")
        invoice_id, original = found
        if not parts:
            raise AllocationError("At least one split part is required")
        if any(part.amount <= 0 for part in parts):
            raise AllocationError("Split amounts must be greater than zero")
        split_total = round(sum(part.amount for part in parts), 2)
        if amounts_differ(split_total, original.amount):
            raise AllocationError(
                f"Split amounts total {split_total:.2f} but the payment is {original.amount:.2f}"
            )

        payments = [
            Payment(
                payment_method=PaymentMethod.split,
                payment_reference=f"Split payment {n}",
                amount=part.amount,
                fa_bank_account=part.bank_account,
                fa_payment_type=part.payment_type,
                allocation_complete=True,
            )
            for n, part in enumerate(parts, start=1)
        ]
        stored = self.repository.replace_payment(payment_id, invoice_id, payments)
        self.log.add(invoice_id, "payment_split", f"Payment split into {len(stored)} parts", actor=actor)
        return stored

    # ------------------------------
    # Reporting and housekeeping
    # ------------------------------

    def get_processing_statistics(self, days: int = 30) -> dict[str, Any]:
        by_status = self.repository.count_by_status(since_days=days)
        total = sum(by_status.values())
        completed = by_status.get(InvoiceStatus.completed.value, 0)

        return {
            "period_days": days,
            "email_import": self._source_statistics(SOURCE_EMAIL, days),
            "pdf_import": self._source_statistics(SOURCE_PDF, days),
            "invoice_processing": {
                "total_invoices": total,
                "pending_invoices": by_status.get(InvoiceStatus.pending.value, 0),
                "matched_invoices": by_status.get(InvoiceStatus.matched.value, 0),
                "completed_invoices": completed,
                "error_invoices": by_status.get(InvoiceStatus.error.value, 0),
                "success_rate": success_rate(completed, total),
            },
            "imports": self.log.count_since(days, "imported"),
        }

    def _source_statistics(self, kind: str, days: int) -> dict[str, Any]:
        counts = self.log.source_stats(kind, days)
        total = sum(counts.values())
        processed = counts.get("processed", 0)
        return {
            "total": total,
            "processed": processed,
            "duplicates": counts.get("duplicate", 0),
            "no_invoice_data": counts.get("no_invoice_data", 0),
            "failed": counts.get("error", 0),
            "success_rate": success_rate(processed, total),
        }

    def get_recent_activity(self, limit: int = 50) -> list[dict[str, Any]]:
        return self.log.recent(limit)

    def cleanup_old_records(self, days: int = 90) -> dict[str, int]:
        """Delete log and processed-source rows older than the given age."""
        removed = {
            "log_entries": self.log.cleanup(days),
            "processed_sources": self.log.cleanup_sources(days),
        }
        logger.info("Cleanup removed %s", removed)
        return removed


__all__ = [
    "ImportResult",
    "InvoiceImportService",
    "PaymentSplit",
    "STATUS_DUPLICATE",
    "STATUS_DUPLICATE_INVOICE",
    "STATUS_ERROR",
    "STATUS_NO_INVOICE_DATA",
    "STATUS_SUCCESS",
    "success_rate",
]
