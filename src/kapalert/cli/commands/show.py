"""kapalert show -- display one alert rule and its script."""

from __future__ import annotations

import click

from kapalert.cli.formatting import format_rule


@click.command()
@click.argument("task_id")
@click.option("--json", "as_json", is_flag=True, help="Print the rule as JSON.")
@click.pass_context
def show(ctx: click.Context, task_id: str, as_json: bool) -> None:
    """Show the alert rule of task TASK_ID."""
    from kapalert.cli import _client_session

    with _client_session(ctx) as (client, console):
        rule = client.get(task_id)
        if as_json:
            click.echo(rule.model_dump_json(indent=2))
        else:
            format_rule(rule, console)
