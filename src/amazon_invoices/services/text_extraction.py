"""
Text extraction for Amazon invoices and order e-mails.

Pure functions over plain text: the OCR engine or mailbox client produces the
text, these functions turn it into a ParsedInvoice. Nothing here touches the
database.

Recognised line item layouts:
- "2 x USB-C Cable $9.99"
- "USB-C Cable (Qty: 2) $9.99"
- "USB-C Cable - $9.99 (x 2)"
An "ASIN: B07232M876" line (or suffix) attaches to the preceding item. Prices
on item lines are unit prices.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from amazon_invoices.config import DEFAULT_CURRENCY
from amazon_invoices.model.invoice import Invoice
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.model.payment import Payment, PaymentMethod

_MONEY = r"(?:C\$|[$€£¥]|USD|EUR|GBP|JPY|CAD)?\s*([0-9][0-9,]*\.?[0-9]*)"

_ORDER_PATTERNS = (
    re.compile(r"Order\s*(?:#|Number|ID)?\s*:?\s*([0-9]{3}-[0-9]{7}-[0-9]{7})", re.IGNORECASE),
    re.compile(r"Order\s*(?:#|Number|ID)\s*:?\s*([A-Z0-9][A-Z0-9\-]{9,19})", re.IGNORECASE),
)

_INVOICE_PATTERNS = (
    re.compile(r"(?:Invoice|Receipt|Document)\s*(?:#|Number|No\.?|:)\s*:?\s*([A-Z0-9][A-Z0-9\-]{7,19})", re.IGNORECASE),
)

_DATE_PATTERNS = (
    re.compile(r"(?:Invoice\s*Date|Order\s*Date|Order\s*Placed|Date)\s*:?\s*([A-Za-z]{3,9}\.?\s+\d{1,2},?\s+\d{4})", re.IGNORECASE),
    re.compile(r"(?:Invoice\s*Date|Order\s*Date|Order\s*Placed|Date)\s*:?\s*(\d{1,2}/\d{1,2}/\d{4})", re.IGNORECASE),
    re.compile(r"(?:Invoice\s*Date|Order\s*Date|Order\s*Placed|Date)\s*:?\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
)
_DATE_FORMATS = ("%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%b. %d, %Y", "%m/%d/%Y", "%Y-%m-%d")

_TOTAL_PATTERNS = (
    re.compile(rf"^\s*Grand\s*Total\s*:?\s*{_MONEY}", re.IGNORECASE | re.MULTILINE),
    re.compile(rf"^\s*(?:Order|Invoice)\s*Total\s*:?\s*{_MONEY}", re.IGNORECASE | re.MULTILINE),
    re.compile(rf"^\s*Total(?:\s*Amount|\s*Price)?\s*:?\s*{_MONEY}", re.IGNORECASE | re.MULTILINE),
    re.compile(rf"^\s*Amount\s*(?:Due|Charged)\s*:?\s*{_MONEY}", re.IGNORECASE | re.MULTILINE),
)
_TAX_PATTERNS = (
    re.compile(rf"^\s*(?:Sales\s*|Estimated\s*)?(?:Tax|VAT)(?:\s*to\s*be\s*collected)?\s*:?\s*{_MONEY}", re.IGNORECASE | re.MULTILINE),
)
_SHIPPING_PATTERNS = (
    re.compile(rf"^\s*(?:Shipping(?:\s*&\s*Handling)?|Delivery|S&H)\s*:?\s*{_MONEY}", re.IGNORECASE | re.MULTILINE),
)

_CURRENCY_EXPLICIT = re.compile(r"Currency\s*:?\s*(USD|EUR|GBP|JPY|CAD)", re.IGNORECASE)
_CURRENCY_SYMBOLS = (
    (re.compile(r"(?:CAD|C\$)\s*\$?[0-9]"), "CAD"),
    (re.compile(r"€\s*[0-9]"), "EUR"),
    (re.compile(r"£\s*[0-9]"), "GBP"),
    (re.compile(r"¥\s*[0-9]"), "JPY"),
    (re.compile(r"\$\s*[0-9]"), "USD"),
)

_ITEM_PATTERNS = (
    # 2 x Name $9.99
    (re.compile(r"^\s*(?P<qty>\d+)\s*x\s+(?P<name>.+?)\s+\$(?P<price>[0-9][0-9,]*\.?[0-9]*)\s*$", re.IGNORECASE)),
    # Name (Qty: 2) $9.99
    (re.compile(r"^\s*(?P<name>.+?)\s*\(Qty:?\s*(?P<qty>\d+)\)\s*\$(?P<price>[0-9][0-9,]*\.?[0-9]*)\s*$", re.IGNORECASE)),
    # Name - $9.99 (x 2)
    (re.compile(r"^\s*(?P<name>.+?)\s+-\s+\$(?P<price>[0-9][0-9,]*\.?[0-9]*)\s*\(x\s*(?P<qty>\d+)\)\s*$", re.IGNORECASE)),
)
_ASIN = re.compile(r"ASIN\s*:?\s*([A-Z0-9]{10})\b", re.IGNORECASE)
_SUMMARY_LINE = re.compile(r"^\s*(?:Sub\s*total|Total|Grand\s*Total|Tax|Sales\s*Tax|Shipping|Order\s*Total)\b", re.IGNORECASE)
_ADDRESS_HEADER = re.compile(r"^\s*(?:Billing|Bill\s*To|Shipping|Ship\s*To)(?:\s*Address)?\s*:?\s*(.*)$", re.IGNORECASE)

_PAYMENT_PATTERNS = (
    (re.compile(r"(Visa|MasterCard|American\s*Express|Discover)\s*(?:ending\s*in\s*)?([0-9]{4})", re.IGNORECASE), PaymentMethod.credit_card),
    (re.compile(r"PayPal", re.IGNORECASE), PaymentMethod.paypal),
    (re.compile(r"Gift\s*Card", re.IGNORECASE), PaymentMethod.gift_card),
    (re.compile(r"(?:Reward\s*)?Points", re.IGNORECASE), PaymentMethod.points),
    (re.compile(r"Bank\s*Transfer", re.IGNORECASE), PaymentMethod.bank_transfer),
    (re.compile(r"Amazon\s*Pay", re.IGNORECASE), PaymentMethod.credit_card),
)

AMAZON_SENDER = re.compile(
    r"@(?:[\w-]+\.)*amazon\.(?:com|co\.uk|de|fr|it|es|ca|com\.au|co\.jp)\b", re.IGNORECASE
)
AMAZON_SUBJECTS = (
    "your amazon.com order",
    "your order confirmation",
    "your amazon receipt",
    "thank you for your amazon order",
    "your shipment from amazon",
)


@dataclass
class ParsedItem:
    product_name: str
    quantity: int
    unit_price: float
    asin: Optional[str] = None

    @property
    def total_price(self) -> float:
        return round(self.quantity * self.unit_price, 2)


@dataclass
class ParsedInvoice:
    """Invoice fields recovered from free text."""

    order_number: str
    invoice_number: str
    total_amount: float
    invoice_date: Optional[date] = None
    tax_amount: float = 0.0
    shipping_amount: float = 0.0
    currency: Optional[str] = None
    items: list[ParsedItem] = field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.credit_card
    payment_reference: Optional[str] = None
    billing_address: Optional[str] = None

    def to_invoice(
        self,
        default_currency: str = DEFAULT_CURRENCY,
        default_date: Optional[date] = None,
        raw_data: Optional[str] = None,
        pdf_path: Optional[str] = None,
    ) -> Invoice:
        """Build an Invoice with one line per parsed item and a single payment."""
        invoice = Invoice(
            invoice_number=self.invoice_number,
            order_number=self.order_number,
            invoice_date=self.invoice_date or default_date or date.today(),
            total_amount=self.total_amount,
            tax_amount=self.tax_amount,
            shipping_amount=self.shipping_amount,
            currency=self.currency or default_currency,
            raw_data=raw_data,
            pdf_path=pdf_path,
        )
        for line, item in enumerate(self.items, start=1):
            invoice.add_item(
                InvoiceItem(
                    line_number=line,
                    product_name=item.product_name,
                    asin=item.asin,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                )
            )
        if self.total_amount > 0:
            invoice.add_payment(
                Payment(
                    payment_method=self.payment_method,
                    payment_reference=self.payment_reference,
                    amount=self.total_amount,
                )
            )
        return invoice


def _money(value: str) -> float:
    return float(value.replace(",", "").rstrip("."))


def _first(patterns, text: str) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1).strip()
    return None


def _first_money(patterns, text: str) -> Optional[float]:
    value = _first(patterns, text)
    return _money(value) if value else None


def extract_date(text: str) -> Optional[date]:
    for pattern in _DATE_PATTERNS:
        for m in pattern.finditer(text):
            raw = re.sub(r"\s+", " ", m.group(1).strip())
            for fmt in _DATE_FORMATS:
                try:
                    return datetime.strptime(raw, fmt).date()
                except ValueError:
                    continue
    return None


def extract_currency(text: str) -> Optional[str]:
    m = _CURRENCY_EXPLICIT.search(text)
    if m:
        return m.group(1).upper()
    for pattern, code in _CURRENCY_SYMBOLS:
        if pattern.search(text):
            return code
    return None


def extract_items(text: str) -> list[ParsedItem]:
    items: list[ParsedItem] = []
    for line in text.splitlines():
        if not line.strip() or _SUMMARY_LINE.match(line):
            continue
        asin = _ASIN.search(line)
        line_without_asin = _ASIN.sub("", line).rstrip(" ,;|-")
        for pattern in _ITEM_PATTERNS:
            m = pattern.match(line_without_asin)
            if m:
                items.append(
                    ParsedItem(
                        product_name=m.group("name").strip(),
                        quantity=max(int(m.group("qty")), 1),
                        unit_price=_money(m.group("price")),
                        asin=asin.group(1).upper() if asin else None,
                    )
                )
                break
        else:
            if asin and items and items[-1].asin is None:
                items[-1].asin = asin.group(1).upper()
    return items


def extract_payment(text: str) -> tuple[PaymentMethod, Optional[str]]:
    for pattern, method in _PAYMENT_PATTERNS:
        m = pattern.search(text)
        if m:
            if m.groups():
                brand = re.sub(r"\s+", " ", m.group(1))
                return method, f"{brand} ending in {m.group(2)}"
            return method, m.group(0)
    return PaymentMethod.credit_card, None


def extract_billing_address(text: str) -> Optional[str]:
    lines = text.splitlines()
    for index, line in enumerate(lines):
        m = _ADDRESS_HEADER.match(line)
        if not m or "$" in line:
            continue
        parts = [m.group(1).strip()] if m.group(1).strip() else []
        for follow in lines[index + 1:index + 4]:
            if not follow.strip():
                break
            parts.append(follow.strip())
        if parts:
            return ", ".join(parts)
    return None


_OCR_FIXES = (
    (re.compile(r"Arr[au]zon", re.IGNORECASE), "Amazon"),
    (re.compile(r"\b0rder", re.IGNORECASE), "Order"),
    (re.compile(r"\bTota[l1I]\b", re.IGNORECASE), "Total"),
    (re.compile(r"[ \t]+"), " "),
    (re.compile(r"\n\s*\n"), "\n"),
)
_CONFIDENCE_TERMS = ("amazon", "order", "total", "invoice", "shipping")


def clean_ocr_text(text: str) -> str:
    """Repair common OCR misreads and squeeze whitespace; line breaks survive."""
    for pattern, replacement in _OCR_FIXES:
        text = pattern.sub(replacement, text)
    return text.strip()


def text_confidence(text: str) -> float:
    """Heuristic 0-100 score of how invoice-like OCR output looks.

    Penalises a high share of special characters and very short text, and
    rewards Amazon invoice vocabulary.
    """
    if not text:
        return 0.0
    confidence = 100.0
    special = len(re.findall(r"[^a-zA-Z0-9\s]", text)) / len(text)
    if special > 0.3:
        confidence -= (special - 0.3) * 100
    if len(text) < 100:
        confidence -= (100 - len(text)) * 0.5
    lowered = text.lower()
    confidence += 5 * sum(1 for term in _CONFIDENCE_TERMS if term in lowered)
    return max(0.0, min(100.0, confidence))


def parse_invoice_text(
    text: str, *, fallback_prefix: str = "PDF", subject: str = ""
) -> Optional[ParsedInvoice]:
    """Parse invoice text into a ParsedInvoice.

    An order number and a total are required; without them the text is not
    treated as an invoice and None is returned. A missing invoice number
    falls back to "<prefix>-<order number>".

    Args:
        text: OCR output or e-mail body
        fallback_prefix: Prefix for generated invoice numbers
        subject: Optional e-mail subject, searched for the order number too

    Returns:
        ParsedInvoice, or None when the text holds no invoice
    """
    if not text or not text.strip():
        return None

    order_number = _first(_ORDER_PATTERNS, text) or (_first(_ORDER_PATTERNS, subject) if subject else None)
    total = _first_money(_TOTAL_PATTERNS, text)
    if not order_number or total is None:
        return None

    invoice_number = _first(_INVOICE_PATTERNS, text) or f"{fallback_prefix}-{order_number}"
    method, reference = extract_payment(text)

    return ParsedInvoice(
        order_number=order_number,
        invoice_number=invoice_number,
        total_amount=total,
        invoice_date=extract_date(text),
        tax_amount=_first_money(_TAX_PATTERNS, text) or 0.0,
        shipping_amount=_first_money(_SHIPPING_PATTERNS, text) or 0.0,
        currency=extract_currency(text),
        items=extract_items(text),
        payment_method=method,
        payment_reference=reference,
        billing_address=extract_billing_address(text),
    )


def is_amazon_email(sender: str, subject: str, body: str = "") -> bool:
    """True for mail sent by an Amazon domain or carrying an Amazon order subject."""
    if sender and AMAZON_SENDER.search(sender):
        return True
    lowered = (subject or "").lower()
    if any(pattern in lowered for pattern in AMAZON_SUBJECTS):
        return True
    body_lowered = (body or "").lower()
    return "amazon.com" in body_lowered and "order" in body_lowered


def parse_email(subject: str, sender: str, body: str) -> Optional[ParsedInvoice]:
    """Parse an order e-mail; None for non-Amazon mail or mail without invoice data."""
    if not is_amazon_email(sender, subject, body):
        return None
    return parse_invoice_text(body, fallback_prefix="EMAIL", subject=subject)


__all__ = [
    "AMAZON_SENDER",
    "AMAZON_SUBJECTS",
    "ParsedInvoice",
    "ParsedItem",
    "clean_ocr_text",
    "extract_billing_address",
    "extract_currency",
    "extract_date",
    "extract_items",
    "extract_payment",
    "is_amazon_email",
    "parse_email",
    "parse_invoice_text",
    "text_confidence",
]
