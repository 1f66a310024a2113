from __future__ import annotations

from typing import Optional, Sequence

from rich.table import Table

from amazon_invoices.services.errors import AllocationError
from amazon_invoices.services.invoice_import_service import InvoiceImportService, PaymentSplit
from amazon_invoices.workspace import Workspace

from .util import console, fmt_amount, load_workspace_settings, open_database


def _parse_split(spec: str) -> PaymentSplit | None:
    """Parse AMOUNT:BANK_ACCOUNT[:PAYMENT_TYPE]."""
    fields = [f.strip() for f in spec.split(":")]
    if len(fields) not in (2, 3):
        return None
    try:
        amount = float(fields[0])
        bank_account = int(fields[1])
        payment_type = int(fields[2]) if len(fields) == 3 and fields[2] else None
    except ValueError:
        return None
    return PaymentSplit(amount=amount, bank_account=bank_account, payment_type=payment_type)


def _splits_table(parts: Sequence[PaymentSplit]) -> Table:
    table = Table(title="Split", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Bank account", justify="right")
    table.add_column("Payment type", justify="right", style="dim")
    for n, part in enumerate(parts, start=1):
        table.add_row(
            str(n),
            fmt_amount(part.amount),
            str(part.bank_account),
            str(part.payment_type) if part.payment_type is not None else "",
        )
    return table


def run(
    *,
    workspace: Workspace,
    payment_id: int,
    actor: str,
    bank_account: Optional[int] = None,
    payment_type: Optional[int] = None,
    notes: Optional[str] = None,
    splits: Sequence[str] = (),
    write: bool = False,
) -> int:
    """Allocate a staged payment to a bank account, or split it across several.

    Exit codes: 0 ok, 1 not found or rejected, 2 bad arguments.
    """
    if splits and bank_account is not None:
        console.print("[red]Error:[/red] Use either --bank-account or --split, not both")
        return 2
    if not splits and bank_account is None:
        console.print("[red]Error:[/red] --bank-account or --split is required")
        return 2

    parts: list[PaymentSplit] = []
    for spec in splits:
        part = _parse_split(spec)
        if part is None:
            console.print(f"[red]Error:[/red] Invalid split '{spec}', expected AMOUNT:BANK_ACCOUNT[:PAYMENT_TYPE]")
            return 2
        parts.append(part)

    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        importer = InvoiceImportService(db, settings)
        found = importer.repository.find_payment(payment_id)
        if found is None:
            console.print(f"[red]Error:[/red] Payment not found: {payment_id}")
            return 1
        invoice_id, payment = found
        console.print(
            f"Payment [bold]{payment_id}[/] of invoice {invoice_id}: "
            f"{payment.display_name} {fmt_amount(payment.amount)}"
        )

        if parts:
            console.print(_splits_table(parts))
        else:
            console.print(f"[cyan]Will allocate[/] to bank account {bank_account}")
        if not write:
            console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
            return 0

        if parts:
            try:
                stored = importer.split_payment(payment_id, parts, actor=actor)
            except AllocationError as e:
                console.print(f"[red]Error:[/red] {e}")
                return 1
            console.print(f"[green]Payment split into {len(stored)} parts.[/]")
        else:
            importer.allocate_payment(payment_id, bank_account, payment_type, notes, actor=actor)
            console.print("[green]Payment allocated.[/]")
    return 0
