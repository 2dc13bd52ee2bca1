"""Unit tests for core/migrations.py"""

import logging

import pytest

from gardenexport.core.errors import MigrationError
from gardenexport.core.migrations import (
    MigrationEngine, SchemaMigration, apply_migrations, get_migration_path, has_migration_path, rename_node_type,
)
from gardenexport.core.models import MetadataSidecar, SchemaSnapshot


def _sidecar(version: str) -> MetadataSidecar:
    return MetadataSidecar(
        schema_version=version, content_id="n1", title="T",
        schema_=SchemaSnapshot(nodes=["doc", "callout"], extensions=["Callout"]),
    )


def _tree():
    return {"type": "doc", "content": [{"type": "callout", "attrs": {"type": "tip"}, "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "hi"}]},
    ]}]}


@pytest.fixture(name="engine")
def engine_fixture():
    tree_fn, meta_fn = rename_node_type("callout", "admonition", "Callout", "Admonition")
    return MigrationEngine(
        migrations=[
            SchemaMigration("1.0.0", "2.0.0", "Rename callout to admonition", True, tree_fn, meta_fn),
            SchemaMigration("2.0.0", "3.0.0", "No-op bump"),
        ],
        current_version="3.0.0",
    )


def test_current_version_returns_inputs_unchanged():
    """No copy and no stamping when the sidecar is already current."""
    tree, meta = _tree(), _sidecar("1.0.0")
    result = apply_migrations(tree, meta)
    assert result.tree is tree
    assert result.metadata is meta
    assert result.applied == [] and result.reached_target


def test_chain_applies_in_order_and_stamps(engine):
    tree, meta = _tree(), _sidecar("1.0.0")
    result = engine.apply_migrations(tree, meta)
    assert [m.to_version for m in result.applied] == ["2.0.0", "3.0.0"]
    assert result.reached_target
    assert result.tree["content"][0]["type"] == "admonition"
    assert result.metadata.schema_version == "3.0.0"
    assert result.metadata.schema_.nodes == ["doc", "admonition"]
    assert result.metadata.schema_.extensions == ["Admonition"]


def test_inputs_are_not_mutated(engine):
    tree, meta = _tree(), _sidecar("1.0.0")
    engine.apply_migrations(tree, meta)
    assert tree["content"][0]["type"] == "callout"
    assert meta.schema_version == "1.0.0"
    assert meta.schema_.nodes == ["doc", "callout"]


def test_partial_chain_still_stamps_target(caplog):
    """A chain that stops short stamps the target, logs a warning, and reports it."""
    engine = MigrationEngine([SchemaMigration("1.0.0", "2.0.0", "step")], current_version="3.0.0")
    with caplog.at_level(logging.WARNING, logger="gardenexport"):
        result = engine.apply_migrations(_tree(), _sidecar("1.0.0"))
    assert not result.reached_target
    assert result.metadata.schema_version == "3.0.0"
    assert "stopped at 2.0.0" in caplog.text


def test_strict_mode_raises_without_path():
    engine = MigrationEngine([], current_version="2.0.0")
    with pytest.raises(MigrationError, match="No migration path from 1.0.0 to 2.0.0"):
        engine.apply_migrations(_tree(), _sidecar("1.0.0"), strict=True)


def test_cycle_in_registry_terminates():
    engine = MigrationEngine(
        [SchemaMigration("1.0.0", "1.5.0", "a"), SchemaMigration("1.5.0", "1.0.0", "b")],
        current_version="2.0.0",
    )
    result = engine.apply_migrations(_tree(), _sidecar("1.0.0"))
    assert [m.description for m in result.applied] == ["a"]
    assert not result.reached_target


def test_has_migration_path(engine):
    assert engine.has_migration_path("1.0.0", "3.0.0")
    assert engine.has_migration_path("3.0.0", "3.0.0")
    assert not engine.has_migration_path("0.1.0", "3.0.0")
    # no registered chain, but the same major is compatible
    assert has_migration_path("1.0.0", "1.4.0")


def test_get_migration_path(engine):
    assert engine.get_migration_path("1.0.0", "3.0.0") == [
        "1.0.0 -> 2.0.0: Rename callout to admonition",
        "2.0.0 -> 3.0.0: No-op bump",
    ]
    assert get_migration_path("1.0.0", "2.0.0") == []


def test_rename_node_type_leaves_other_nodes():
    tree_fn, _ = rename_node_type("tag", "label")
    out = tree_fn({"type": "doc", "content": [{"type": "tag"}, {"type": "paragraph"}]})
    assert [n["type"] for n in out["content"]] == ["label", "paragraph"]
