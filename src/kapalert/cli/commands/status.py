"""kapalert status -- show task status."""

from __future__ import annotations

import click

from kapalert.cli.formatting import format_status_table


@click.command()
@click.argument("task_id", required=False)
@click.pass_context
def status(ctx: click.Context, task_id: str | None) -> None:
    """Show the status of TASK_ID, or of every task if omitted."""
    from kapalert.cli import _client_session

    with _client_session(ctx) as (client, console):
        if task_id is None:
            format_status_table(client.all_status(), console)
        else:
            console.print(client.status(client.href(task_id)) or "unknown")
