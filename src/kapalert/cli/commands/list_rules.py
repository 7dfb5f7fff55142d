"""kapalert list -- show every alert task."""

from __future__ import annotations

import click

from kapalert.cli.formatting import format_rules_table


@click.command("list")
@click.pass_context
def list_rules(ctx: click.Context) -> None:
    """List alert tasks with their trigger, task type and status."""
    from kapalert.cli import _client_session

    with _client_session(ctx) as (client, console):
        rules = client.all()
        statuses = client.all_status()
        format_rules_table(rules, statuses, console)
