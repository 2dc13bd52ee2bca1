"""Schema version registry: current version label, supported catalog, and change history

Versioning follows MAJOR.MINOR.PATCH:
  MAJOR  removes or renames a node/mark type, or changes a required attribute.
         Old exports need a registered migration (see core/migrations.py).
  MINOR  adds a node/mark type or an optional attribute. No migration needed.
  PATCH  converter fixes with no schema change.

When bumping SCHEMA_VERSION, append an entry to SCHEMA_HISTORY and, for a MAJOR
bump, register a migration.
"""

from dataclasses import dataclass, field

from gardenexport.core.models import SchemaSnapshot
from gardenexport.core.nodes import MarkType, NodeType


SCHEMA_VERSION = "1.0.0"

EXTENSIONS = [
    "StarterKit",
    "CodeBlockLowlight",
    "Placeholder",
    "TaskList",
    "TaskItem",
    "Link",
    "Table",
    "CharacterCount",
    "WikiLink",
    "Tag",
    "Callout",
]

REQUIRED_ATTRIBUTES: dict[str, tuple[str, ...]] = {
    "heading":   ("level",),
    "codeBlock": ("language",),
    "wikiLink":  ("targetTitle",),
    "tag":       ("tagId", "tagName"),
    "callout":   ("type",),
}


@dataclass(frozen=True)
class SchemaChange:
    type:        str        # add | modify | remove | upgrade
    target:      str        # node | mark | extension | core
    name:        str
    description: str
    breaking:    bool = False
    migrations_available: tuple[str, ...] = ()


@dataclass(frozen=True)
class SchemaVersion:
    version: str
    date:    str
    changes: tuple[SchemaChange, ...] = field(default_factory=tuple)
    migrations_required: bool = False


SCHEMA_HISTORY: list[SchemaVersion] = [
    SchemaVersion(
        version="1.0.0",
        date="2026-01-26",
        changes=(
            SchemaChange("add", "node", "wikiLink", "Obsidian-style [[links]] with target and display text"),
            SchemaChange("add", "node", "tag", "#tag nodes with ID, color, and metadata"),
            SchemaChange("add", "node", "callout", "Obsidian-style callouts with type and title"),
            SchemaChange("add", "extension", "TaskList", "Task list with checkboxes"),
            SchemaChange("add", "extension", "Table", "Basic table support"),
            SchemaChange("upgrade", "core", "editor-core", "Editor core 3.15.3"),
        ),
    ),
]


def get_current_schema_version() -> str:
    return SCHEMA_VERSION


def get_current_schema_snapshot() -> SchemaSnapshot:
    """Return every node type, mark type, and extension the converters support."""
    return SchemaSnapshot(
        version=SCHEMA_VERSION,
        nodes=[t.value for t in NodeType],
        marks=[m.value for m in MarkType],
        extensions=list(EXTENSIONS),
    )


def required_attributes(node_type: str | None) -> tuple[str, ...]:
    return REQUIRED_ATTRIBUTES.get(node_type or "", ())


def _parse(version: str) -> tuple[int, int, int]:
    """Parse 'MAJOR.MINOR.PATCH'; missing or non-numeric segments count as 0."""
    parts = []
    for segment in (version or "").split(".")[:3]:
        try:
            parts.append(int(segment))
        except ValueError:
            parts.append(0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def major(version: str) -> int:
    return _parse(version)[0]


def compare_versions(v1: str, v2: str) -> int:
    """Return a positive number if v1 > v2, negative if v1 < v2, zero if equal."""
    a, b = _parse(v1), _parse(v2)
    for x, y in zip(a, b):
        if x != y:
            return x - y
    return 0


def is_compatible_version(version: str, current: str | None = None) -> bool:
    """Compatible means same major version as current (default: the running schema)."""
    return major(version) == major(current or SCHEMA_VERSION)


def get_changes_between(
    from_version: str,
    to_version: str,
    history: list[SchemaVersion] | None = None,
    ) -> list[SchemaChange]:
    """All changes recorded after from_version up to and including to_version."""
    changes: list[SchemaChange] = []
    for entry in history if history is not None else SCHEMA_HISTORY:
        if compare_versions(entry.version, from_version) > 0 and compare_versions(entry.version, to_version) <= 0:
            changes.extend(entry.changes)
    return changes


def get_required_migrations(from_version: str, history: list[SchemaVersion] | None = None) -> list[SchemaChange]:
    """Breaking changes recorded after from_version (the ones that need a migration)."""
    changes: list[SchemaChange] = []
    for entry in history if history is not None else SCHEMA_HISTORY:
        if compare_versions(entry.version, from_version) > 0:
            changes.extend(c for c in entry.changes if c.breaking)
    return changes
