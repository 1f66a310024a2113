from __future__ import annotations

"""
Amazon invoices CLI wrapper (Typer + Rich)

Stages Amazon purchase invoices for FrontAccounting: import from PDFs or the
sample downloader, match items to stock, allocate payments, review and mark
as processed.

All paths are resolved from a single workspace root:
  --data-dir / AMAZON_INVOICES_DATA env var / current working directory
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from amazon_invoices.config import ACTOR_ENV_VAR, DATA_DIR_ENV_VAR, DEFAULT_ACTOR
from amazon_invoices.workspace import Workspace

HELP_WRITE = "Persist changes (default: dry-run)"

APP_HELP = "Amazon invoice staging for FrontAccounting (local-only)"
HELP_INVOICE_ID = "Staging invoice ID (see 'pending')"
DATE_FORMATS = ["%Y-%m-%d"]

app = typer.Typer(no_args_is_help=True, add_completion=False, help=APP_HELP)


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        envvar=DATA_DIR_ENV_VAR,
        help="Workspace root directory (default: current directory)",
    ),
    actor: Optional[str] = typer.Option(
        None,
        "--actor",
        envvar=ACTOR_ENV_VAR,
        help="User recorded in the processing log (default: $USER)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log service activity to stderr"),
):
    """Amazon invoices CLI: all paths resolved from a single workspace root."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["workspace"] = Workspace.resolve(data_dir)
    ctx.obj["actor"] = actor or os.environ.get("USER") or DEFAULT_ACTOR


def _ws(ctx: typer.Context) -> Workspace:
    return ctx.obj["workspace"]


def _actor(ctx: typer.Context) -> str:
    return ctx.obj["actor"]


@app.command()
def init(ctx: typer.Context):
    """Initialize a workspace: directories, starter settings and staging tables.

    Safe to run on an existing workspace; skips anything that already exists.

    Examples:
      amazon-invoices --data-dir ~/amazon init
      amazon-invoices init
    """
    from amazon_invoices.cli.command import init as cmd_init

    code = cmd_init.run(workspace=_ws(ctx))
    raise typer.Exit(code=code)


@app.command()
def download(
    ctx: typer.Context,
    start: datetime = typer.Option(..., "--start", formats=DATE_FORMATS, help="First order date (YYYY-MM-DD)"),
    end: datetime = typer.Option(..., "--end", formats=DATE_FORMATS, help="Last order date (YYYY-MM-DD)"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducible sample data"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """Generate sample Amazon invoices for a date range and stage them.

    Examples:
      amazon-invoices download --start 2025-01-01 --end 2025-01-31
      amazon-invoices download --start 2025-01-01 --end 2025-01-31 --write
    """
    from amazon_invoices.cli.command import download as cmd_download

    code = cmd_download.run(
        workspace=_ws(ctx),
        start=start.date(),
        end=end.date(),
        actor=_actor(ctx),
        seed=seed,
        write=write,
    )
    raise typer.Exit(code=code)


@app.command(name="import-pdf")
def import_pdf(
    ctx: typer.Context,
    file: Path = typer.Option(..., "--file", "-f", help="Amazon invoice PDF"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """OCR one invoice PDF and stage it (dry-run previews the extracted data).

    Requires the pdftoppm and tesseract tools (see the ocr section of config/settings.yml).

    Examples:
      amazon-invoices import-pdf --file ~/Downloads/invoice.pdf
      amazon-invoices import-pdf -f inbox/invoice.pdf --write
    """
    from amazon_invoices.cli.command import import_pdf as cmd_import_pdf

    code = cmd_import_pdf.run(workspace=_ws(ctx), pdf_path=file, actor=_actor(ctx), write=write)
    raise typer.Exit(code=code)


@app.command(name="import-dir")
def import_dir(
    ctx: typer.Context,
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Directory of PDFs (default: inbox/)"),
    archive: bool = typer.Option(False, "--archive", help="Move imported and duplicate PDFs to archive/"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """Import every PDF in a directory.

    Files already processed (same content hash) are reported as duplicates.

    Examples:
      amazon-invoices import-dir
      amazon-invoices import-dir --write --archive
      amazon-invoices import-dir --dir ~/Downloads/amazon --write
    """
    from amazon_invoices.cli.command import import_dir as cmd_import_dir

    code = cmd_import_dir.run(
        workspace=_ws(ctx), directory=directory, actor=_actor(ctx), archive=archive, write=write
    )
    raise typer.Exit(code=code)


@app.command()
def pending(
    ctx: typer.Context,
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Max number of invoices to show"),
):
    """List staged invoices awaiting review."""
    from amazon_invoices.cli.command import pending as cmd_pending

    code = cmd_pending.run(workspace=_ws(ctx), limit=limit)
    raise typer.Exit(code=code)


@app.command()
def show(
    ctx: typer.Context,
    invoice_id: int = typer.Option(..., "--id", help=HELP_INVOICE_ID),
    log: bool = typer.Option(False, "--log", help="Include the invoice's processing log"),
):
    """Show one staged invoice with items, payments and open problems."""
    from amazon_invoices.cli.command import show as cmd_show

    code = cmd_show.run(workspace=_ws(ctx), invoice_id=invoice_id, show_log=log)
    raise typer.Exit(code=code)


@app.command()
def match(
    ctx: typer.Context,
    invoice_id: int = typer.Option(..., "--id", help=HELP_INVOICE_ID),
    item_id: Optional[int] = typer.Option(None, "--item", help="Item ID to match manually (see 'show')"),
    stock_id: Optional[str] = typer.Option(None, "--stock", help="Stock ID for a manual match"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """Match invoice items to stock, by rules or manually.

    A manual match also learns ASIN and SKU rules for future invoices.

    Examples:
      amazon-invoices match --id 12
      amazon-invoices match --id 12 --write
      amazon-invoices match --id 12 --item 40 --stock CABLE-USBC --write
    """
    from amazon_invoices.cli.command import match as cmd_match

    code = cmd_match.run(
        workspace=_ws(ctx),
        invoice_id=invoice_id,
        actor=_actor(ctx),
        item_id=item_id,
        stock_id=stock_id,
        write=write,
    )
    raise typer.Exit(code=code)


@app.command()
def rules(
    ctx: typer.Context,
    show_all: bool = typer.Option(False, "--all", help="Include inactive rules"),
    add: Optional[str] = typer.Option(None, "--add", help="Add a rule: TYPE=VALUE (asin, sku, product_name, keyword)"),
    stock_id: Optional[str] = typer.Option(None, "--stock", help="Stock ID for --add"),
    priority: int = typer.Option(1, "--priority", min=1, help="Rule priority for --add (lower wins)"),
    enable: Optional[int] = typer.Option(None, "--enable", help="Activate a rule by ID"),
    disable: Optional[int] = typer.Option(None, "--disable", help="Deactivate a rule by ID"),
    delete: Optional[int] = typer.Option(None, "--delete", help="Delete a rule by ID"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """List or manage item matching rules.

    Examples:
      amazon-invoices rules
      amazon-invoices rules --add asin=B08N5WRWNW --stock CABLE-USBC --write
      amazon-invoices rules --add keyword=toner --stock TONER --priority 5 --write
      amazon-invoices rules --disable 3 --write
    """
    from amazon_invoices.cli.command import rules as cmd_rules

    code = cmd_rules.run(
        workspace=_ws(ctx),
        actor=_actor(ctx),
        show_all=show_all,
        add=add,
        stock_id=stock_id,
        priority=priority,
        enable=enable,
        disable=disable,
        delete=delete,
        write=write,
    )
    raise typer.Exit(code=code)


@app.command()
def suggest(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Product name as printed on the invoice"),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Max number of suggestions"),
):
    """Rank stock records that could match a product name."""
    from amazon_invoices.cli.command import suggest as cmd_suggest

    code = cmd_suggest.run(workspace=_ws(ctx), product_name=name, limit=limit)
    raise typer.Exit(code=code)


@app.command(name="mark-processed")
def mark_processed(
    ctx: typer.Context,
    invoice_id: int = typer.Option(..., "--id", help=HELP_INVOICE_ID),
    notes: Optional[str] = typer.Option(None, "--notes", help="Notes stored on the invoice"),
    fa_trans_no: Optional[int] = typer.Option(None, "--fa-trans-no", help="FrontAccounting transaction number"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """Mark a staged invoice as completed after posting it to FrontAccounting.

    Examples:
      amazon-invoices mark-processed --id 12 --fa-trans-no 4711 --write
    """
    from amazon_invoices.cli.command import mark_processed as cmd_mark_processed

    code = cmd_mark_processed.run(
        workspace=_ws(ctx),
        invoice_id=invoice_id,
        actor=_actor(ctx),
        notes=notes,
        fa_trans_no=fa_trans_no,
        write=write,
    )
    raise typer.Exit(code=code)


@app.command()
def allocate(
    ctx: typer.Context,
    payment_id: int = typer.Option(..., "--payment", help="Payment ID (see 'show')"),
    bank_account: Optional[int] = typer.Option(None, "--bank-account", help="FrontAccounting bank account"),
    payment_type: Optional[int] = typer.Option(None, "--payment-type", help="FrontAccounting payment type"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Notes stored on the payment"),
    splits: Optional[List[str]] = typer.Option(
        None, "--split", help="Split part AMOUNT:BANK_ACCOUNT[:PAYMENT_TYPE] (repeatable)"
    ),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """Allocate a payment to a bank account, or split it across several.

    Examples:
      amazon-invoices allocate --payment 7 --bank-account 1060 --write
      amazon-invoices allocate --payment 7 --split 30.00:1060 --split 19.98:1065:2 --write
    """
    from amazon_invoices.cli.command import allocate as cmd_allocate

    code = cmd_allocate.run(
        workspace=_ws(ctx),
        payment_id=payment_id,
        actor=_actor(ctx),
        bank_account=bank_account,
        payment_type=payment_type,
        notes=notes,
        splits=splits or [],
        write=write,
    )
    raise typer.Exit(code=code)


@app.command()
def stats(
    ctx: typer.Context,
    days: int = typer.Option(30, "--days", min=1, help="Reporting period in days"),
    recent: int = typer.Option(10, "--recent", min=0, help="Recent log entries to show (0 to hide)"),
):
    """Show import and processing statistics."""
    from amazon_invoices.cli.command import stats as cmd_stats

    code = cmd_stats.run(workspace=_ws(ctx), days=days, recent=recent)
    raise typer.Exit(code=code)


@app.command()
def cleanup(
    ctx: typer.Context,
    days: Optional[int] = typer.Option(None, "--days", min=1, help="Keep records newer than this (default: max_file_age_days)"),
    write: bool = typer.Option(False, "--write", help=HELP_WRITE),
):
    """Remove old processing log and processed-source records."""
    from amazon_invoices.cli.command import cleanup as cmd_cleanup

    code = cmd_cleanup.run(workspace=_ws(ctx), days=days, write=write)
    raise typer.Exit(code=code)


if __name__ == "__main__":
    app()  # pragma: no cover
