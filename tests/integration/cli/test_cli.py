"""Integration tests for the gardenexport CLI commands"""

import json
import logging
import zipfile

import pytest
from typer.testing import CliRunner

from gardenexport.cli.cli import app
from gardenexport.core.models import ErrorType
from gardenexport.core.monitor import ErrorMonitor
from gardenexport.core.utils.logging import ROOT_LOGGER
from gardenexport.crud.database import make_engine
from gardenexport.crud.sql_repo import SQLSource


runner = CliRunner()


@pytest.fixture(name="workspace", autouse=True)
def workspace_fixture(tmp_path, monkeypatch):
    """Run every command from an empty directory against a throwaway SQLite file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GARDENEXPORT_DB_URL", f"sqlite:///{tmp_path}/test.db")
    yield tmp_path
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture(name="tree_file")
def tree_file_fixture(workspace, sample_tree):
    path = workspace / "garden.json"
    path.write_text(json.dumps(sample_tree), encoding="utf-8")
    return path


def _sidecar(workspace, schema_version: str = "1.0.0"):
    path = workspace / "garden.meta.json"
    path.write_text(json.dumps({
        "version": "1.0",
        "schemaVersion": schema_version,
        "contentId": "n1",
        "title": "Garden Notes",
        "tags": [{"id": "t1", "name": "Work", "slug": "work", "color": "#ff0000"}],
    }), encoding="utf-8")
    return path


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("convert", "validate", "migrate", "export", "export-doc", "import", "roundtrip"):
        assert name in result.output


def test_init_creates_database(workspace):
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    assert (workspace / "test.db").exists()
    assert runner.invoke(app, ["init", "--reset"]).exit_code == 0


# --- convert ---

def test_convert_to_html(workspace, tree_file):
    result = runner.invoke(app, ["convert", str(tree_file), "-f", "html", "--out-dir", "out"])
    assert result.exit_code == 0, result.output
    page = (workspace / "out" / "garden.html").read_text(encoding="utf-8")
    assert page.startswith("<!DOCTYPE html>")


def test_convert_markdown_with_metadata(workspace, tree_file):
    sidecar = _sidecar(workspace)
    result = runner.invoke(app, ["convert", str(tree_file), "--metadata", str(sidecar), "--out-dir", "out"])
    assert result.exit_code == 0, result.output
    markdown = (workspace / "out" / "garden.md").read_text(encoding="utf-8")
    assert markdown.startswith("---\ntitle: Garden Notes\n")
    assert (workspace / "out" / "garden.meta.json").exists()


def test_convert_unknown_format(tree_file):
    result = runner.invoke(app, ["convert", str(tree_file), "-f", "rtf"])
    assert result.exit_code == 1
    assert "Unsupported export format: rtf" in result.output


def test_convert_docx_fails(tree_file):
    result = runner.invoke(app, ["convert", str(tree_file), "-f", "docx", "--out-dir", "out"])
    assert result.exit_code == 1
    assert "DOCX export not yet implemented." in result.output


def test_convert_missing_file():
    result = runner.invoke(app, ["convert", "nope.json"])
    assert result.exit_code == 1
    assert "Cannot read document" in result.output


# --- validate ---

def test_validate_valid_tree(tree_file):
    result = runner.invoke(app, ["validate", str(tree_file)])
    assert result.exit_code == 0, result.output
    assert "Validation passed" in result.output


def test_validate_invalid_tree(workspace):
    path = workspace / "bad.json"
    path.write_text(json.dumps({"type": "doc", "content": [{"type": "heading", "content": []}]}), encoding="utf-8")
    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1
    assert "MISSING_REQUIRED_ATTRIBUTE" in result.output


# --- migrate ---

def test_migrate_stamps_current_version(workspace, tree_file):
    sidecar = _sidecar(workspace, "0.9.0")
    result = runner.invoke(app, ["migrate", str(tree_file), str(sidecar), "--out-dir", "out"])
    assert result.exit_code == 0, result.output
    assert "migration chain incomplete" in result.output
    meta = json.loads((workspace / "out" / "garden.meta.json").read_text(encoding="utf-8"))
    assert meta["schemaVersion"] == "1.0.0"


def test_migrate_strict_fails_without_path(workspace, tree_file):
    sidecar = _sidecar(workspace, "0.9.0")
    result = runner.invoke(app, ["migrate", str(tree_file), str(sidecar), "--strict"])
    assert result.exit_code == 1
    assert "No migration path from 0.9.0" in result.output


# --- import / export ---

def _import(workspace, name: str, text: str, *extra: str):
    path = workspace / name
    path.write_text(text, encoding="utf-8")
    return runner.invoke(app, ["import", str(path), *extra])


def test_import_prints_tree_without_owner(workspace):
    result = _import(workspace, "note.md", "# Hello\n\nSee [[Other]]")
    assert result.exit_code == 0, result.output
    assert '"wikiLink"' in result.output


def test_import_rejects_sidecar_file(workspace):
    result = _import(workspace, "note.meta.json", "{}")
    assert result.exit_code == 1
    assert "Cannot import" in result.output


def test_import_then_export_vault(workspace):
    assert _import(workspace, "first.md", "# First\n\nBody one", "--owner", "u1").exit_code == 0
    assert _import(workspace, "second.md", "# Second\n\nBody two", "--owner", "u1").exit_code == 0

    result = runner.invoke(app, ["export", "--owner", "u1", "--out-dir", "out"])
    assert result.exit_code == 0, result.output
    archives = list((workspace / "out").glob("digital-garden-export-*.zip"))
    assert len(archives) == 1
    with zipfile.ZipFile(archives[0]) as zf:
        names = set(zf.namelist())
    assert {"first.md", "first.meta.json", "second.md", "second.meta.json", "README.md"} <= names


def test_export_counts_errors_when_monitor_is_full(workspace, monkeypatch):
    monitor = ErrorMonitor(max_errors=1)
    monitor.log_error("old", "markdown", "u0", "1.0.0", ErrorType.system, "OLD", "from an earlier run")
    monkeypatch.setattr("gardenexport.core.monitor._default", monitor)
    assert _import(workspace, "solo.md", "# Solo\n\nJust me", "--owner", "u1").exit_code == 0

    result = runner.invoke(app, ["export", "--owner", "u1", "-f", "docx", "--out-dir", "out"])
    assert result.exit_code == 0, result.output
    assert "1 error(s) logged during export" in result.output
    assert len(monitor) == 1
    assert monitor.get_errors()[0].error_code == "CONVERSION_FAILED"


def test_export_single_document(workspace):
    assert _import(workspace, "solo.md", "# Solo\n\nJust me", "--owner", "u1").exit_code == 0
    record = SQLSource(make_engine(f"sqlite:///{workspace}/test.db")).find_documents("u1")[0]

    result = runner.invoke(app, ["export-doc", record.id, "--owner", "u1", "-f", "txt", "--out-dir", "out"])
    assert result.exit_code == 0, result.output
    assert (workspace / "out" / "solo.txt").read_text(encoding="utf-8") == "Solo\n\nJust me\n\n"


def test_export_single_document_wrong_owner(workspace):
    assert _import(workspace, "solo.md", "# Solo", "--owner", "u1").exit_code == 0
    record = SQLSource(make_engine(f"sqlite:///{workspace}/test.db")).find_documents("u1")[0]
    result = runner.invoke(app, ["export-doc", record.id, "--owner", "u2"])
    assert result.exit_code == 1
    assert "not found or access denied" in result.output


# --- roundtrip ---

def test_roundtrip_reports_no_semantic_loss(tree_file):
    result = runner.invoke(app, ["roundtrip", str(tree_file)])
    assert result.exit_code == 0, result.output
    assert "Round trip" in result.output
