"""kapalert render -- print the TICKscript of a rule file."""

from __future__ import annotations

import click
from pydantic import ValidationError

from kapalert.cli.formatting import format_error, get_console


@click.command()
@click.argument("rule_file", type=click.File("r"))
def render(rule_file) -> None:
    """Render the alert rule in RULE_FILE (JSON) to TICKscript.

    Works offline; Kapacitor is not contacted.
    """
    from kapalert.engine.generator import generate
    from kapalert.exceptions import GenerationError
    from kapalert.models.rule import AlertRule

    console = get_console()
    try:
        rule = AlertRule.model_validate_json(rule_file.read())
        script = generate(rule)
    except ValidationError as e:
        format_error(f"Invalid rule file: {e}", console)
        raise SystemExit(1) from None
    except GenerationError as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
    click.echo(script, nl=False)
