"""kapalert enable / disable -- switch a task on or off."""

from __future__ import annotations

import click


@click.command()
@click.argument("task_id")
@click.pass_context
def enable(ctx: click.Context, task_id: str) -> None:
    """Enable task TASK_ID."""
    from kapalert.cli import _client_session

    with _client_session(ctx) as (client, console):
        task = client.enable(client.href(task_id))
        console.print(f"[yellow]{task.id}[/yellow] is now [green]{task.status}[/green]")


@click.command()
@click.argument("task_id")
@click.pass_context
def disable(ctx: click.Context, task_id: str) -> None:
    """Disable task TASK_ID."""
    from kapalert.cli import _client_session

    with _client_session(ctx) as (client, console):
        task = client.disable(client.href(task_id))
        console.print(f"[yellow]{task.id}[/yellow] is now [yellow]{task.status}[/yellow]")
