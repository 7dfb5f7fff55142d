"""kapalert delete -- remove an alert task."""

from __future__ import annotations

import click


@click.command()
@click.argument("task_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def delete(ctx: click.Context, task_id: str, yes: bool) -> None:
    """Delete task TASK_ID from Kapacitor."""
    from kapalert.cli import _client_session

    if not yes:
        click.confirm(f"Delete task {task_id}?", abort=True)

    with _client_session(ctx) as (client, console):
        client.delete(client.href(task_id))
        console.print(f"Deleted [yellow]{task_id}[/yellow]")
