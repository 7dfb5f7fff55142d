"""Kapalert CLI -- terminal interface for Kapacitor alert tasks.

This module is NEVER imported from kapalert/__init__.py.
It is only loaded via the ``kapalert`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install kapalert[cli]"
    ) from None

from kapalert.cli.formatting import format_error, get_console
from kapalert.models.config import (
    DEFAULT_URL,
    ENV_PASSWORD,
    ENV_TIMEOUT,
    ENV_URL,
    ENV_USERNAME,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from kapalert.client import Client


@click.group()
@click.option(
    "--url",
    default=DEFAULT_URL,
    envvar=ENV_URL,
    help="Kapacitor base URL.",
)
@click.option(
    "--username",
    default="",
    envvar=ENV_USERNAME,
    help="Basic auth user (empty disables authentication).",
)
@click.option(
    "--password",
    default="",
    envvar=ENV_PASSWORD,
    help="Basic auth password.",
)
@click.option(
    "--timeout",
    default=30.0,
    type=float,
    envvar=ENV_TIMEOUT,
    help="Request timeout in seconds.",
)
@click.pass_context
def cli(
    ctx: click.Context, url: str, username: str, password: str, timeout: float
) -> None:
    """Kapalert: manage Kapacitor alert rules as TICKscript tasks."""
    ctx.ensure_object(dict)
    ctx.obj["url"] = url
    ctx.obj["username"] = username
    ctx.obj["password"] = password
    ctx.obj["timeout"] = timeout


def _get_client(ctx: click.Context) -> Client:
    """Build a Client from the connection options in the Click context."""
    from kapalert.client import Client
    from kapalert.models.config import KapacitorConfig

    config = KapacitorConfig(
        url=ctx.obj["url"],
        username=ctx.obj["username"],
        password=ctx.obj["password"],
        timeout=ctx.obj["timeout"],
    )
    connector = ctx.obj.get("connector")
    if connector is not None:
        return Client.from_config(config, connector=connector)
    return Client.from_config(config)


@contextmanager
def _client_session(ctx: click.Context) -> Iterator[tuple[Client, Console]]:
    """Context manager that yields (client, console) and reports errors.

    Any exception escaping the ``with`` block is printed as a CLI error and
    turned into exit status 1. Commands with special exception handling can
    catch specific errors inside the block first.
    """
    console = get_console()
    try:
        yield _get_client(ctx), console
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from kapalert.cli.commands.list_rules import list_rules  # noqa: E402
from kapalert.cli.commands.status import status  # noqa: E402
from kapalert.cli.commands.show import show  # noqa: E402
from kapalert.cli.commands.toggle import disable, enable  # noqa: E402
from kapalert.cli.commands.delete import delete  # noqa: E402
from kapalert.cli.commands.render import render  # noqa: E402
from kapalert.cli.commands.reverse import reverse  # noqa: E402

cli.add_command(list_rules)
cli.add_command(status)
cli.add_command(show)
cli.add_command(enable)
cli.add_command(disable)
cli.add_command(delete)
cli.add_command(render)
cli.add_command(reverse)
