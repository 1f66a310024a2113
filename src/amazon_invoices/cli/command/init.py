"""Initialize a new amazon-invoices workspace directory."""

from __future__ import annotations

from amazon_invoices.model.settings import Settings
from amazon_invoices.model.settings_io import save_settings
from amazon_invoices.storage.gateway import SqliteGateway
from amazon_invoices.storage.schema import install_schema, tables_exist
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings


def run(*, workspace: Workspace) -> int:
    """Create the workspace directories, starter settings and staging tables.

    Skips anything that already exists (safe to run on an existing workspace).

    Args:
        workspace: Workspace to initialize

    Returns:
        Exit code (0 = success)
    """
    root = workspace.root
    console.print(f"[bold cyan]Initializing workspace:[/] {root}\n")

    created: list[str] = []
    skipped: list[str] = []

    for directory in [
        workspace.data_dir,
        workspace.inbox_dir,
        workspace.archive_dir,
        workspace.settings_path.parent,
    ]:
        rel = str(directory.relative_to(root)) + "/"
        if directory.exists():
            skipped.append(rel)
        else:
            directory.mkdir(parents=True, exist_ok=True)
            created.append(rel)

    settings_rel = str(workspace.settings_path.relative_to(root))
    if workspace.settings_path.exists():
        skipped.append(settings_rel)
    else:
        save_settings(workspace.settings_path, Settings())
        created.append(settings_rel)

    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1

    db_rel = str(workspace.database_path.relative_to(root))
    with SqliteGateway(workspace.database_path, settings.table_prefix) as db:
        if tables_exist(db):
            skipped.append(f"{db_rel} (prefix '{settings.table_prefix}')")
        else:
            install_schema(db)
            created.append(f"{db_rel} (prefix '{settings.table_prefix}')")

    if created:
        console.print("[green]Created:[/]")
        for item in created:
            console.print(f"  {item}")

    if skipped:
        console.print("[dim]Already exists (skipped):[/dim]")
        for item in skipped:
            console.print(f"  [dim]{item}[/dim]")

    if not created:
        console.print("[green]Workspace already fully initialized.[/]")
    else:
        console.print(f"\n[green]Workspace ready at {root}[/]")
        console.print("\n[dim]Next steps:[/dim]")
        console.print("  1. Edit config/settings.yml (currency, matching thresholds, OCR tools)")
        console.print("  2. Drop Amazon invoice PDFs into inbox/")
        console.print("  3. Run: amazon-invoices import-dir --write")
        console.print("  4. Run: amazon-invoices pending")

    return 0
