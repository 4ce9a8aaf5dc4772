"""CLI entrypoint: Typer app definition and command registration"""

import typer

from mdmigrate.cli.commands import classify_cmd, history_cmd, init_cmd, migrate_cmd, parse_cmd, validate_cmd


app = typer.Typer(name="mdmigrate", no_args_is_help=True, help="Documentation-driven project migration")

app.command(name="parse")(parse_cmd)
app.command(name="classify")(classify_cmd)
app.command(name="migrate")(migrate_cmd)
app.command(name="validate")(validate_cmd)
app.command(name="history")(history_cmd)
app.command(name="init")(init_cmd)
