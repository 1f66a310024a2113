from __future__ import annotations

from rich.table import Table

from amazon_invoices.model.invoice import Invoice
from amazon_invoices.services.invoice_import_service import InvoiceImportService
from amazon_invoices.workspace import Workspace

from .util import console, fmt_amount, load_workspace_settings, open_database


def _items_table(invoice: Invoice) -> Table:
    table = Table(title="Items", show_lines=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("#", justify="right")
    table.add_column("Product", style="white")
    table.add_column("ASIN", style="blue")
    table.add_column("Qty", justify="right")
    table.add_column("Unit", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Stock", style="green")
    table.add_column("Match", style="dim")
    for item in invoice.items:
        table.add_row(
            str(item.id),
            str(item.line_number),
            item.product_name[:50],
            item.asin or "",
            str(item.quantity),
            fmt_amount(item.unit_price),
            fmt_amount(item.total_price),
            item.fa_stock_id or "[yellow]unmatched[/yellow]",
            item.match_type.value if item.match_type else "",
        )
    return table


def _payments_table(invoice: Invoice) -> Table:
    table = Table(title="Payments", show_lines=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Method", style="white")
    table.add_column("Reference", style="dim")
    table.add_column("Amount", justify="right")
    table.add_column("Allocated")
    for payment in invoice.payments:
        table.add_row(
            str(payment.id),
            payment.display_name,
            payment.payment_reference or "",
            fmt_amount(payment.amount),
            f"bank {payment.fa_bank_account}" if payment.allocation_complete else "[yellow]no[/yellow]",
        )
    return table


def run(*, workspace: Workspace, invoice_id: int, show_log: bool = False) -> int:
    """Display one staged invoice with its items, payments and open problems."""
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        importer = InvoiceImportService(db, settings)
        invoice = importer.repository.find_by_id(invoice_id)
        if invoice is None:
            console.print(f"[red]Error:[/red] Invoice not found: {invoice_id}")
            return 1
        problems = importer.validate_invoice_data(invoice_id)
        log = importer.log.for_invoice(invoice_id) if show_log else []

    console.print(
        f"[bold cyan]{invoice.invoice_number}[/]  order {invoice.order_number}  "
        f"{invoice.invoice_date}  [bold]{invoice.status.value}[/]"
    )
    console.print(
        f"Total {invoice.total_amount:.2f} {invoice.currency}  "
        f"(tax {invoice.tax_amount:.2f}, shipping {invoice.shipping_amount:.2f})"
    )
    if invoice.fa_transaction_number is not None:
        console.print(f"FA transaction: {invoice.fa_transaction_number}")
    if invoice.notes:
        console.print(f"Notes: {invoice.notes}")

    if invoice.items:
        console.print(_items_table(invoice))
    if invoice.payments:
        console.print(_payments_table(invoice))

    if problems:
        console.print("[yellow]Problems:[/]")
        for problem in problems:
            console.print(f"  - {problem}")
    else:
        console.print("[green]Ready to post[/]")

    for entry in log:
        console.print(
            f"[dim]{entry['created_at']}[/dim] {entry['action']} "
            f"{entry['details'] or ''} [dim]({entry['user_id']})[/dim]"
        )
    return 0
