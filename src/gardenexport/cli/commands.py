"""CLI command implementations"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import SQLModel

from gardenexport.config import Settings, load_config
from gardenexport.converters.factory import convert_document, parse_format
from gardenexport.converters.markdown import to_markdown
from gardenexport.core.errors import ExportError, ImportFailedError, MigrationError
from gardenexport.core.export import Exporter
from gardenexport.core.migrations import apply_migrations
from gardenexport.core.models import BulkExportFilters, BulkExportOptions, ConversionOptions, MetadataSidecar
from gardenexport.core.monitor import ErrorMonitor, default_monitor
from gardenexport.core.utils.logging import configure_logging
from gardenexport.core.validation import format_validation_result, validate_before_export
from gardenexport.crud.database import init_db, make_engine
from gardenexport.crud.sql_repo import SQLSource
from gardenexport.importer.markdown import parse_markdown
from gardenexport.importer.roundtrip import verify_round_trip
from gardenexport.importer.service import import_file, to_record


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling, then attach log handlers."""
    try:
        settings = load_config(overrides=overrides)
    except (ValueError, PydanticValidationError) as e:
        _fail(str(e))
    configure_logging(settings.log_level, settings.log_file)
    return settings


def _read_json(path: str, what: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        _fail(f"Cannot read {what} {path}", e)
    except json.JSONDecodeError as e:
        _fail(f"{what.capitalize()} {path} is not valid JSON", e)


def _read_sidecar(path: str | None) -> MetadataSidecar | None:
    if not path:
        return None
    try:
        return MetadataSidecar.model_validate(_read_json(path, "metadata"))
    except PydanticValidationError as e:
        _fail(f"Metadata {path} is not a valid sidecar", e)


def _monitor(settings: Settings) -> ErrorMonitor:
    return default_monitor(settings.max_errors)


def _echo_warnings(warnings: list) -> None:
    for warning in warnings:
        text = warning if isinstance(warning, str) else f"{warning.code}: {warning.message}"
        typer.echo(f"  warning: {text}")


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize database schema. Use --reset to clear existing data."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        SQLModel.metadata.drop_all(engine)
        typer.echo("Existing data cleared.")
    init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")


def convert_cmd(
    path: Annotated[str, typer.Argument(help="Document tree JSON file")],
    format: Annotated[str, typer.Option("--format", "-f", help="markdown, html, json, txt, pdf or docx")] = "markdown",
    metadata: Annotated[Optional[str], typer.Option("--metadata", help="Sidecar .meta.json for front matter")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    ):
    """Convert one document tree and write the produced files."""
    settings = _settings(overrides={"output_dir": out})
    try:
        export_format = parse_format(format)
    except ExportError as e:
        _fail(str(e))

    tree = _read_json(path, "document")
    options = ConversionOptions(format=export_format, settings=settings.export, metadata=_read_sidecar(metadata))
    result = convert_document(tree, options)
    _echo_warnings(result.warnings)
    if not result.success:
        _fail(f"Conversion to {export_format.value} failed")

    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(path).stem
    for file in result.files:
        target = output_dir / file.name.replace("document", stem, 1)
        if isinstance(file.content, bytes):
            target.write_bytes(file.content)
        else:
            target.write_text(file.content, encoding="utf-8")
        typer.echo(f"  {path} -> {target}")
    typer.echo(f"Wrote {len(result.files)} file(s) to {output_dir}/")


def validate_cmd(
    path: Annotated[str, typer.Argument(help="Document tree JSON file")],
    metadata: Annotated[Optional[str], typer.Option("--metadata", help="Sidecar .meta.json to cross-check")] = None,
    ):
    """Check a document tree (and optional sidecar) before export. Exits 1 when invalid."""
    _settings()
    tree = _read_json(path, "document")
    sidecar = _read_json(metadata, "metadata") if metadata else None
    result = validate_before_export(tree, sidecar)
    typer.echo(format_validation_result(result))
    if not result.valid:
        raise typer.Exit(1)


def migrate_cmd(
    path: Annotated[str, typer.Argument(help="Document tree JSON file")],
    metadata: Annotated[str, typer.Argument(help="Sidecar .meta.json carrying the exported schema version")],
    strict: Annotated[bool, typer.Option("--strict", help="Fail when no full migration path exists")] = False,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    ):
    """Upgrade an exported tree and sidecar to the current schema version."""
    settings = _settings(overrides={"output_dir": out})
    tree = _read_json(path, "document")
    sidecar = _read_sidecar(metadata)
    try:
        result = apply_migrations(tree, sidecar, strict=strict)
    except MigrationError as e:
        _fail(str(e))

    for step in result.applied:
        typer.echo(f"  applied: {step.from_version} -> {step.to_version}: {step.description}")
    if not result.reached_target:
        typer.echo("  warning: migration chain incomplete; output is stamped with the current version")

    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(path).stem
    (output_dir / f"{stem}.json").write_text(json.dumps(result.tree, indent=2, ensure_ascii=False), encoding="utf-8")
    (output_dir / f"{stem}.meta.json").write_text(
        json.dumps(result.metadata.to_wire(), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    typer.echo(f"Schema now at {result.metadata.schema_version}; wrote {output_dir}/{stem}.json")


def export_cmd(
    owner: Annotated[str, typer.Option("--owner", help="Owner whose notes are exported")],
    format: Annotated[Optional[str], typer.Option("--format", "-f", help="Target format")] = None,
    parent: Annotated[Optional[str], typer.Option("--parent", help="Only notes directly under this folder id")] = None,
    tags: Annotated[Optional[list[str]], typer.Option("--tag", help="Only notes with this tag slug (repeatable)")] = None,
    include_deleted: Annotated[bool, typer.Option("--include-deleted", help="Include soft-deleted notes")] = False,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    ):
    """Export every matching note into a zip archive."""
    settings = _settings(overrides={"output_dir": out})
    try:
        export_format = parse_format(format or settings.export.default_format)
    except ExportError as e:
        _fail(str(e))

    engine = make_engine(settings.db_url)
    init_db(engine)
    monitor = _monitor(settings)
    exporter = Exporter(SQLSource(engine), monitor=monitor, settings=settings.export)
    options = BulkExportOptions(
        user_id=owner,
        format=export_format,
        filters=BulkExportFilters(parent_id=parent, tags=tags or None, include_deleted=include_deleted),
        settings=settings.export,
    )
    started = datetime.now(timezone.utc)
    try:
        archive = exporter.export_vault(options)
    except Exception as e:
        _fail("Export failed", e)

    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    target = output_dir / f"digital-garden-export-{stamp}.zip"
    target.write_bytes(archive)

    # entries from this run only
    logged = [e for e in monitor.get_errors() if e.timestamp >= started]
    if logged:
        typer.echo(f"  {len(logged)} error(s) logged during export")
        for rec in monitor.recommendations():
            typer.echo(f"  {rec}")
    typer.echo(f"Exported archive to {target}")


def export_doc_cmd(
    content_id: Annotated[str, typer.Argument(help="Note id")],
    owner: Annotated[str, typer.Option("--owner", help="Owner of the note")],
    format: Annotated[Optional[str], typer.Option("--format", "-f", help="Target format")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    ):
    """Export a single note and write its files."""
    settings = _settings(overrides={"output_dir": out})
    engine = make_engine(settings.db_url)
    init_db(engine)
    exporter = Exporter(SQLSource(engine), monitor=_monitor(settings), settings=settings.export)
    try:
        result = exporter.export_single_document(content_id, owner, format or settings.export.default_format)
    except ExportError as e:
        _fail(str(e))

    _echo_warnings(result.warnings)
    record = exporter.source.get_document(content_id)
    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    for file in result.files:
        target = output_dir / file.name.replace("document", record.slug or content_id, 1)
        if isinstance(file.content, bytes):
            target.write_bytes(file.content)
        else:
            target.write_text(file.content, encoding="utf-8")
        typer.echo(f"  {content_id} -> {target}")


def import_cmd(
    path: Annotated[str, typer.Argument(help="Markdown (.md) or document tree (.json) file")],
    sidecar: Annotated[Optional[str], typer.Option("--sidecar", help="Sidecar .meta.json (defaults to the sibling file)")] = None,
    title: Annotated[Optional[str], typer.Option("--title", help="Title for the new note")] = None,
    owner: Annotated[Optional[str], typer.Option("--owner", help="Save the note to the database for this owner")] = None,
    parent: Annotated[Optional[str], typer.Option("--parent", help="Folder id for the saved note")] = None,
    ):
    """Import a file as a note. Without --owner, print the document tree instead of saving."""
    settings = _settings()
    try:
        doc = import_file(Path(path), Path(sidecar) if sidecar else None, title)
    except (ImportFailedError, OSError) as e:
        _fail(f"Cannot import {path}", e)

    _echo_warnings(doc.warnings)
    if not owner:
        typer.echo(json.dumps(doc.tree, indent=2, ensure_ascii=False))
        return

    engine = make_engine(settings.db_url)
    init_db(engine)
    source = SQLSource(engine)
    try:
        record = source.add(to_record(doc, owner, source, parent_id=parent))
    except Exception as e:
        _fail("Saving the imported note failed", e)
    typer.echo(f"Imported {path} as '{record.title}' ({record.slug}, id {record.id})")


def roundtrip_cmd(
    path: Annotated[str, typer.Argument(help="Document tree JSON file")],
    ):
    """Export a tree to markdown, re-import it, and report what was lost. Exits 1 on semantic loss."""
    settings = _settings()
    tree = _read_json(path, "document")
    markdown_settings = settings.export.markdown.model_copy(update={"include_frontmatter": False})
    reimported = parse_markdown(to_markdown(tree, markdown_settings)).tree
    report = verify_round_trip(tree, reimported)
    for diff in report.differences:
        typer.echo(f"  [{diff.category.value}] {diff.path}: {diff.message}")
    typer.echo(
        f"Round trip: {report.semantic_count} semantic, {report.cosmetic_count} cosmetic difference(s)"
        if not report.identical else "Round trip is lossless"
    )
    if report.semantic_count:
        raise typer.Exit(1)
