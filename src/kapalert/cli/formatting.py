"""Rich formatting helpers for the Kapalert CLI.

Provides functions that format SDK data structures for terminal display.
Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from kapalert.models.rule import AlertRule, TriggerCondition


_STATUS_STYLES = {"enabled": "green", "disabled": "yellow"}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _status_markup(status: str) -> str:
    if not status:
        return "[dim]unknown[/dim]"
    style = _STATUS_STYLES.get(status, "red")
    return f"[{style}]{status}[/{style}]"


def format_rules_table(
    rules: dict[str, AlertRule], statuses: dict[str, str], console: Console
) -> None:
    """Display alert rules as a table, one row per task."""
    if not rules:
        console.print("[dim]No alert tasks.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="yellow", no_wrap=True)
    table.add_column("Name")
    table.add_column("Trigger", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Status")

    for task_id in sorted(rules):
        rule = rules[task_id]
        table.add_row(
            task_id,
            escape(rule.name),
            rule.trigger,
            rule.task_type.value,
            _status_markup(statuses.get(task_id, "")),
        )

    console.print(table)


def format_status_table(statuses: dict[str, str], console: Console) -> None:
    """Display the status of every task."""
    if not statuses:
        console.print("[dim]No tasks.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="yellow", no_wrap=True)
    table.add_column("Status")
    for task_id in sorted(statuses):
        table.add_row(task_id, _status_markup(statuses[task_id]))
    console.print(table)


def _format_condition(cond: TriggerCondition) -> str:
    text = f"{cond.level}: value {cond.operator} {cond.value}"
    if cond.range_value:
        text += f" and {cond.range_value}"
    return text


def format_rule(rule: AlertRule, console: Console) -> None:
    """Display one alert rule followed by its TICKscript."""
    console.print(f"[bold]Alert:[/bold] {escape(rule.name)}")
    console.print(f"  ID:       [yellow]{rule.id}[/yellow]")
    console.print(f"  Trigger:  [cyan]{rule.trigger}[/cyan] ({rule.task_type.value})")

    query = rule.query
    if query is None:
        console.print("  Query:    [dim]none[/dim]")
    else:
        source = f"{query.database}.{query.retention_policy}.{query.measurement}"
        console.print(f"  Query:    {escape(source)}")
        for field in query.fields:
            funcs = ", ".join(field.funcs)
            suffix = f" [dim]({funcs})[/dim]" if funcs else ""
            console.print(f"    field {escape(field.name)}{suffix}")
        if query.group_by.time or query.group_by.tags:
            tags = ", ".join(query.group_by.tags)
            console.print(
                f"    group by {query.group_by.time or '-'}"
                + (f" [dim]tags: {escape(tags)}[/dim]" if tags else "")
            )

    if rule.every:
        console.print(f"  Every:    {rule.every}")
    if rule.trigger == "relative":
        console.print(f"  Change:   {rule.change} over {rule.shift}")
    if rule.trigger == "deadman":
        console.print(f"  Period:   {rule.period}")
    for cond in rule.conditions:
        console.print(f"  Level     {escape(_format_condition(cond))}")
    if rule.message:
        console.print(f"  Message:  {escape(rule.message)}")
    for handler in rule.handlers:
        args = ", ".join(handler.args)
        console.print(f"  Handler:  [magenta]{handler.name}[/magenta]({escape(args)})")

    if rule.tick_script:
        console.print()
        console.print(Syntax(rule.tick_script, "javascript", theme="ansi_dark", word_wrap=True))


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def format_warning(message: str, console: Console) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)
