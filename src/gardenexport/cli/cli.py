"""CLI entrypoint: Typer app definition and command registration"""

import typer

from gardenexport.cli.commands import (
    convert_cmd, export_cmd, export_doc_cmd, import_cmd, init_cmd, migrate_cmd, roundtrip_cmd, validate_cmd,
)


app = typer.Typer(name="gardenexport", no_args_is_help=True, help="Convert, validate, migrate and export note trees")

app.command(name="init")(init_cmd)
app.command(name="convert")(convert_cmd)
app.command(name="validate")(validate_cmd)
app.command(name="migrate")(migrate_cmd)
app.command(name="export")(export_cmd)
app.command(name="export-doc")(export_doc_cmd)
app.command(name="import")(import_cmd)
app.command(name="roundtrip")(roundtrip_cmd)
