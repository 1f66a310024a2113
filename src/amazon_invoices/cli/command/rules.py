from __future__ import annotations

from typing import Optional

from rich.table import Table

from amazon_invoices.model.matching_rule import RULE_TYPES, MatchingRule
from amazon_invoices.services.item_matching_service import ItemMatchingService
from amazon_invoices.workspace import Workspace

from .util import console, load_workspace_settings, open_database


def _parse_rule(spec: str) -> tuple[str, str] | None:
    match_type, sep, value = spec.partition("=")
    match_type, value = match_type.strip().lower(), value.strip()
    if not sep or not match_type or not value:
        return None
    return match_type, value


def _rules_table(rules: list[MatchingRule]) -> Table:
    table = Table(title="Matching rules", show_lines=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Value", style="white")
    table.add_column("Stock", style="green")
    table.add_column("Description", style="dim")
    table.add_column("Prio", justify="right")
    table.add_column("Active")
    table.add_column("By", style="dim")
    for rule in rules:
        table.add_row(
            str(rule.id),
            rule.match_type,
            rule.match_value,
            rule.fa_stock_id,
            rule.stock_description or "",
            str(rule.priority),
            "yes" if rule.active else "[dim]no[/dim]",
            rule.created_by or "",
        )
    return table


def run(
    *,
    workspace: Workspace,
    actor: str,
    show_all: bool = False,
    add: Optional[str] = None,
    stock_id: Optional[str] = None,
    priority: int = 1,
    enable: Optional[int] = None,
    disable: Optional[int] = None,
    delete: Optional[int] = None,
    write: bool = False,
) -> int:
    """List or manage item matching rules.

    Exactly one of --add, --enable, --disable or --delete changes a rule;
    with none of them the rules are listed.
    """
    actions = [a for a in (add, enable, disable, delete) if a is not None]
    if len(actions) > 1:
        console.print("[red]Error:[/red] Specify only one of --add, --enable, --disable or --delete.")
        return 2

    parsed = None
    if add is not None:
        parsed = _parse_rule(add)
        if parsed is None:
            console.print("[red]Error:[/red] --add expects TYPE=VALUE, e.g. asin=B08N5WRWNW")
            return 2
        if not stock_id:
            console.print("[red]Error:[/red] --stock is required with --add.")
            return 2
        if parsed[0] not in RULE_TYPES:
            console.print(
                f"[yellow]Warning:[/yellow] '{parsed[0]}' is not one of {', '.join(RULE_TYPES)}; "
                "the rule will never be selected."
            )

    settings = load_workspace_settings(workspace)
    if settings is None:
        return 1
    db = open_database(workspace, settings)
    if db is None:
        return 1

    with db:
        matcher = ItemMatchingService(db, settings=settings.matching)

        if not actions:
            rules = matcher.get_matching_rules(active_only=not show_all)
            if not rules:
                console.print("[yellow]No matching rules defined[/]")
                return 0
            console.print(_rules_table(rules))
            return 0

        if parsed is not None:
            console.print(
                f"[cyan]Will add rule[/] {parsed[0]}='{parsed[1]}' -> [bold]{stock_id}[/] (priority {priority})"
            )
        elif delete is not None:
            console.print(f"[cyan]Will delete rule[/] {delete}")
        else:
            rule_id = enable if enable is not None else disable
            console.print(f"[cyan]Will {'enable' if enable is not None else 'disable'} rule[/] {rule_id}")

        if not write:
            console.print("[green]Dry-run:[/] no changes written. Use --write to persist.")
            return 0

        if parsed is not None:
            rule_id = matcher.add_matching_rule(parsed[0], parsed[1], stock_id, priority, actor=actor)
            console.print(f"[green]Added rule {rule_id}[/]")
            return 0
        if delete is not None:
            changed = matcher.delete_rule(delete)
            rule_id = delete
        else:
            changed = matcher.update_rule_status(rule_id, enable is not None)

    if not changed:
        console.print(f"[red]Error:[/red] Rule not found: {rule_id}")
        return 1
    console.print(f"[green]Rule {rule_id} updated.[/]")
    return 0
