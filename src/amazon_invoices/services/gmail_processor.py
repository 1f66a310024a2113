"""
Gmail import pipeline.

The mailbox is an injected MailboxClient (the Google API client in production,
a Mock in tests). This module builds the search query, skips messages that were
already handled, parses order e-mails and hands the invoices to the import
service. Message ids are remembered in the processed-source registry.

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence

from amazon_invoices.services.errors import ExtractionError
from amazon_invoices.services.invoice_import_service import (
    STATUS_DUPLICATE,
    STATUS_DUPLICATE_INVOICE,
    STATUS_ERROR,
    STATUS_NO_INVOICE_DATA,
    ImportResult,
    InvoiceImportService,
)
from amazon_invoices.services.text_extraction import parse_email
from amazon_invoices.storage.processing_log import SOURCE_EMAIL

logger = logging.getLogger(__name__)

PATTERN_FROM = "from"
PATTERN_SUBJECT = "subject"

DEFAULT_SEARCH_PATTERNS: tuple[tuple[str, str], ...] = (
    (PATTERN_FROM, "auto-confirm@amazon.com"),
    (PATTERN_FROM, "ship-confirm@amazon.com"),
    (PATTERN_FROM, "order-update@amazon.com"),
    (PATTERN_FROM, "digital-no-reply@amazon.com"),
    (PATTERN_SUBJECT, "Your Amazon.com order"),
    (PATTERN_SUBJECT, "Your order confirmation"),
    (PATTERN_SUBJECT, "Your Amazon receipt"),
    (PATTERN_SUBJECT, "Thank you for your Amazon order"),
    (PATTERN_SUBJECT, "Your shipment from Amazon"),
)


@dataclass
class MailMessage:
    message_id: str
    subject: str
    sender: str
    body: str
    received_at: Optional[datetime] = None


class MailboxClient(Protocol):
    def list_messages(self, query: str, max_results: int) -> Sequence[str]:
        ...

    def get_message_content(self, message_id: str) -> MailMessage:
        ...


def build_query(
    patterns: Iterable[tuple[str, str]],
    since: Optional[date] = None,
    until: Optional[date] = None,
) -> str:
    """Gmail search string: date bounds, then OR-groups of senders and subjects.

    >>> build_query([("from", "a@amazon.com"), ("subject", "Your order")], date(2024, 1, 5))
    'after:2024/01/05 (from:a@amazon.com) (subject:"Your order")'
    """
    parts: list[str] = []
    if since is not None:
        parts.append(f"after:{since.strftime('%Y/%m/%d')}")
    if until is not None:
        parts.append(f"before:{until.strftime('%Y/%m/%d')}")

    patterns = list(patterns)
    senders = [f"from:{value}" for kind, value in patterns if kind == PATTERN_FROM]
    subjects = [f'subject:"{value}"' for kind, value in patterns if kind == PATTERN_SUBJECT]
    if senders:
        parts.append(f"({' OR '.join(senders)})")
    if subjects:
        parts.append(f"({' OR '.join(subjects)})")
    return " ".join(parts)


class GmailProcessor:
    """Turns Amazon order e-mails into staged invoices."""

    def __init__(
        self,
        client: MailboxClient,
        importer: InvoiceImportService,
        patterns: Iterable[tuple[str, str]] | None = None,
    ):
        self.client = client
        self.importer = importer
        self.log = importer.log
        self.patterns = list(patterns) if patterns is not None else list(DEFAULT_SEARCH_PATTERNS)

    def process_messages(
        self,
        *,
        actor: str,
        since: Optional[date] = None,
        until: Optional[date] = None,
        max_results: int = 50,
    ) -> list[ImportResult]:
        """Search the mailbox and import every new Amazon order e-mail.

        Raises:
            ExtractionError: If the mailbox search itself fails
        """
        query = build_query(self.patterns, since, until)
        try:
            message_ids = list(self.client.list_messages(query, max_results))
        except Exception as e:
            raise ExtractionError(f"Failed to search mailbox: {e}") from e

        logger.info("Mailbox search returned %d message(s) for %r", len(message_ids), query)
        results: list[ImportResult] = []
        for message_id in message_ids[:max_results]:
            try:
                results.append(self.process_message(message_id, actor=actor))
            except Exception as e:
                logger.warning("Failed to process message %s: %s", message_id, e, exc_info=True)
                self.log.mark_source_processed(SOURCE_EMAIL, message_id, STATUS_ERROR, details=str(e))
                results.append(
                    ImportResult(
                        status=STATUS_ERROR,
                        message="E-mail processing failed",
                        error=str(e),
                        source=message_id,
                    )
                )
        return results

    def process_message(self, message_id: str, *, actor: str) -> ImportResult:
        if self.log.is_source_processed(SOURCE_EMAIL, message_id):
            return ImportResult(
                status=STATUS_DUPLICATE, message="E-mail already processed", source=message_id
            )

        message = self.client.get_message_content(message_id)
        parsed = parse_email(message.subject, message.sender, message.body)
        if parsed is None:
            self.log.mark_source_processed(
                SOURCE_EMAIL, message_id, STATUS_NO_INVOICE_DATA, details=message.subject
            )
            return ImportResult(
                status=STATUS_NO_INVOICE_DATA,
                message="No invoice data found in e-mail",
                source=message_id,
            )

        received = message.received_at.date() if message.received_at else None
        invoice = parsed.to_invoice(
            self.importer.settings.default_currency, default_date=received, raw_data=message.body
        )
        result = self.importer.import_invoice(invoice, actor=actor, source=SOURCE_EMAIL)
        result.source = message_id

        status = STATUS_DUPLICATE if result.status == STATUS_DUPLICATE_INVOICE else "processed"
        invoice_id = result.invoice_id if result.success else None
        self.log.mark_source_processed(SOURCE_EMAIL, message_id, status, invoice_id, message.subject)
        return result


__all__ = [
    "DEFAULT_SEARCH_PATTERNS",
    "GmailProcessor",
    "MailMessage",
    "MailboxClient",
    "PATTERN_FROM",
    "PATTERN_SUBJECT",
    "build_query",
]
