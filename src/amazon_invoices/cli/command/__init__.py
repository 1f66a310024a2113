from __future__ import annotations

# Command implementations for the amazon-invoices CLI.
# Each command module exposes a `run(...)` function that performs the action
# and prints to the console. Typer wrappers in amazon_invoices.cli.app delegate here.

__all__ = [
    "init",
    "download",
    "import_pdf",
    "import_dir",
    "pending",
    "show",
    "match",
    "rules",
    "suggest",
    "mark_processed",
    "allocate",
    "stats",
    "cleanup",
]
