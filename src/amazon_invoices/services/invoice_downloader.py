"""
Sample invoice downloader.

Stands in for a real Amazon account connection: it generates plausible
invoices for a date range from a fixed product list. The random source is
injectable so tests can pin the output.

Invoice total is items plus shipping; item tax is recorded per line and on
the header but is not added to the total.

NO IMPORTS FROM:
- rich (console, table, prompt)
- typer
"""

from __future__ import annotations

import json
import random
from datetime import date, timedelta
from typing import Any, Mapping, Optional

from amazon_invoices.config import DEFAULT_CURRENCY
from amazon_invoices.model.invoice import Invoice
from amazon_invoices.model.invoice_item import InvoiceItem
from amazon_invoices.model.payment import Payment, PaymentMethod

TAX_RATE = 0.08
MAX_INVOICES = 5

SAMPLE_PRODUCTS: tuple[dict[str, str], ...] = (
    {"name": "Wireless Bluetooth Headphones", "asin": "B08N5WRWNW", "sku": "WBH-001"},
    {"name": "USB-C to USB-A Cable 6ft", "asin": "B07232M876", "sku": "CABLE-USB-001"},
    {"name": "Ergonomic Wireless Mouse", "asin": "B085BTK9P7", "sku": "MOUSE-ERG-001"},
    {"name": "Mechanical Gaming Keyboard", "asin": "B07ZGDPT4M", "sku": "KB-MECH-001"},
    {"name": "Portable Phone Charger 10000mAh", "asin": "B07YSY9N19", "sku": "CHRG-PORT-001"},
)


def invoice_from_data(data: Mapping[str, Any]) -> Invoice:
    """Build an Invoice from the downloader's dict layout.

    Payments with a zero (or missing) amount take whatever is left of the
    total after the payments before them.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    missing = [k for k in ("invoice_number", "order_number", "invoice_date", "items") if k not in data]
    if missing:
        raise ValueError(f"Missing required invoice fields: {', '.join(missing)}")

    items_total = sum(float(item["total_price"]) for item in data["items"])
    tax_total = sum(float(item.get("tax_amount", 0.0)) for item in data["items"])
    shipping = float(data.get("shipping_amount", 0.0))
    total = round(float(data.get("total_amount", items_total + shipping)), 2)

    invoice = Invoice(
        invoice_number=data["invoice_number"],
        order_number=data["order_number"],
        invoice_date=data["invoice_date"],
        total_amount=total,
        tax_amount=round(tax_total, 2),
        shipping_amount=shipping,
        currency=data.get("currency", DEFAULT_CURRENCY),
        raw_data=json.dumps(data, default=str),
    )

    for item in data["items"]:
        invoice.add_item(
            InvoiceItem(
                line_number=item["line_number"],
                product_name=item["product_name"],
                asin=item.get("asin"),
                sku=item.get("sku"),
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                total_price=item["total_price"],
                tax_amount=item.get("tax_amount", 0.0),
            )
        )

    remaining = total
    for payment in data.get("payments", []):
        amount = float(payment.get("amount") or 0) or round(remaining, 2)
        invoice.add_payment(
            Payment(
                payment_method=payment["method"],
                payment_reference=payment.get("reference"),
                amount=amount,
            )
        )
        remaining -= amount

    return invoice


class SampleInvoiceDownloader:
    """Generates sample Amazon invoices in place of a live account download."""

    def __init__(self, rng: Optional[random.Random] = None, currency: str = DEFAULT_CURRENCY):
        self.rng = rng or random.Random()
        self.currency = currency
        self.credentials: dict[str, str] = {}

    # ------------------------------
    # Downloader contract
    # ------------------------------

    def download_invoices(self, start: date, end: date) -> list[Invoice]:
        """Roughly one invoice per week in [start, end], between 1 and 5.

        Raises:
            ValueError: If start is after end
        """
        if start > end:
            raise ValueError("Start date must be before end date")
        return [invoice_from_data(data) for data in self.generate_invoice_data(start, end)]

    def parse_invoice_data(self, raw: str, fmt: str = "json") -> Invoice:
        """Parse raw invoice data.

        Raises:
            NotImplementedError: For pdf and html, which need an external parser
            ValueError: For invalid JSON or an unknown format
        """
        if fmt == "json":
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON data: {e}") from e
            return invoice_from_data(data)
        if fmt in ("pdf", "html"):
            raise NotImplementedError(f"{fmt.upper()} parsing not implemented - use an external parser")
        raise ValueError(f"Unsupported format: {fmt}")

    def validate_invoice(self, invoice: Invoice) -> list[str]:
        """Invoice, item and payment problems plus the import business rules."""
        errors = list(invoice.validate())
        for item in invoice.items:
            errors.extend(f"Item {item.line_number}: {error}" for error in item.validate())
        for payment in invoice.payments:
            errors.extend(f"Payment {payment.payment_method.value}: {error}" for error in payment.validate())
        if not invoice.items:
            errors.append("Invoice must have at least one item")
        if not invoice.payments:
            errors.append("Invoice must have at least one payment method")
        return errors

    def set_credentials(self, email: str, password: str) -> None:
        if not email:
            raise ValueError("Missing required credential: email")
        if not password:
            raise ValueError("Missing required credential: password")
        self.credentials = {"email": email, "password": password}

    def test_connection(self) -> bool:
        return bool(self.credentials.get("email") and self.credentials.get("password"))

    # ------------------------------
    # Sample generation
    # ------------------------------

    def generate_invoice_data(self, start: date, end: date) -> list[dict[str, Any]]:
        days = (end - start).days
        count = min(MAX_INVOICES, max(1, days // 7))

        invoices = []
        for i in range(1, count + 1):
            invoice_date = start + timedelta(days=self.rng.randint(0, days))
            items = self._sample_items()
            invoices.append(
                {
                    "invoice_number": f"AMZ-{invoice_date.strftime('%Y%m%d')}-{i:04d}",
                    "order_number": (
                        f"123-{self.rng.randint(1000000, 9999999)}-{self.rng.randint(1000000, 9999999)}"
                    ),
                    "invoice_date": invoice_date.isoformat(),
                    "currency": self.currency,
                    "shipping_amount": self.rng.randint(0, 1000) / 100,
                    "items": items,
                    "payments": self._sample_payments(sum(item["total_price"] for item in items)),
                }
            )
        return invoices

    def _sample_items(self) -> list[dict[str, Any]]:
        items = []
        for line in range(1, self.rng.randint(1, 3) + 1):
            product = self.rng.choice(SAMPLE_PRODUCTS)
            quantity = self.rng.randint(1, 2)
            unit_price = self.rng.randint(1500, 8000) / 100
            total_price = round(quantity * unit_price, 2)
            items.append(
                {
                    "line_number": line,
                    "product_name": product["name"],
                    "asin": product["asin"],
                    "sku": product["sku"],
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "total_price": total_price,
                    "tax_amount": round(total_price * TAX_RATE, 2),
                }
            )
        return items

    def _sample_payments(self, items_total: float) -> list[dict[str, Any]]:
        method = self.rng.choice(
            [PaymentMethod.credit_card, PaymentMethod.paypal, PaymentMethod.gift_card]
        )
        card = f"**** **** **** {self.rng.randint(1000, 9999)}"

        if method == PaymentMethod.gift_card and self.rng.randint(0, 1):
            gift = min(self.rng.randint(1000, 3000) / 100, round(items_total / 2, 2))
            return [
                {"method": "gift_card", "reference": f"Gift Card ****{self.rng.randint(1000, 9999)}", "amount": gift},
                {"method": "credit_card", "reference": card, "amount": 0},
            ]

        references = {
            PaymentMethod.credit_card: card,
            PaymentMethod.paypal: f"PayPal transaction {self.rng.getrandbits(32):08X}",
            PaymentMethod.gift_card: f"Gift Card ****{self.rng.randint(1000, 9999)}",
        }
        return [{"method": method.value, "reference": references[method], "amount": 0}]


__all__ = ["SAMPLE_PRODUCTS", "SampleInvoiceDownloader", "TAX_RATE", "invoice_from_data"]
