"""kapalert reverse -- rebuild a rule from a TICKscript file."""

from __future__ import annotations

import click

from kapalert.cli.formatting import format_error, format_warning, get_console


@click.command()
@click.argument("script_file", type=click.File("r"))
def reverse(script_file) -> None:
    """Reverse-parse the TICKscript in SCRIPT_FILE and print the rule as JSON.

    If the script is valid but not a generated alert shape, the fields that
    could be extracted are printed and the exit status is 1.
    """
    from kapalert.engine.reverse import reverse as reverse_script
    from kapalert.exceptions import ScriptSyntaxError, UnsupportedScriptError

    console = get_console()
    script = script_file.read()
    try:
        rule = reverse_script(script)
    except UnsupportedScriptError as e:
        format_warning(f"Unsupported script: {e}", console)
        click.echo(e.partial.model_dump_json(indent=2))
        raise SystemExit(1) from None
    except ScriptSyntaxError as e:
        format_error(f"Invalid TICKscript: {e}", console)
        raise SystemExit(1) from None
    click.echo(rule.model_dump_json(indent=2))
