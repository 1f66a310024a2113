from __future__ import annotations

from rich.table import Table

from amazon_invoices.services.item_matching_service import ItemMatchingService
from amazon_invoices.workspace import Workspace

from .util import console, fmt_amount, load_workspace_settings, open_database


def run(*, workspace: Workspace, product_name: str, limit: int = 10) -> int:
    """Rank stock records that could match a product name."""
    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        suggestions = ItemMatchingService(db, settings=settings.matching).get_suggested_stock_items(
            product_name, limit
        )

    if not suggestions:
        console.print(f"[yellow]No stock suggestions for[/] '{product_name}'")
        return 0

    table = Table(title=f"Suggestions for '{product_name}'", show_lines=False)
    table.add_column("Stock", style="green", no_wrap=True)
    table.add_column("Description", style="white")
    table.add_column("Units", style="dim")
    table.add_column("Cost", justify="right")
    table.add_column("Conf", justify="right", style="cyan")
    for s in suggestions:
        table.add_row(
            s.stock_id,
            s.description,
            s.units or "",
            fmt_amount(s.material_cost or 0.0),
            f"{s.confidence}%",
        )
    console.print(table)
    return 0
