"""Schema migrations: ordered version-to-version transforms for trees and sidecars"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Callable

from gardenexport.core.errors import MigrationError
from gardenexport.core.models import MetadataSidecar
from gardenexport.core.nodes import Node, children
from gardenexport.core.schema import get_changes_between, get_current_schema_version, is_compatible_version


logger = logging.getLogger(__name__)

DEFAULT_FROM_VERSION = "1.0.0"

TreeTransform = Callable[[Node], Node]
MetadataTransform = Callable[[MetadataSidecar], MetadataSidecar]


def _identity(value):
    return value


@dataclass(frozen=True)
class SchemaMigration:
    """One step in the migration chain. Transforms receive private copies and return new values."""
    from_version: str
    to_version: str
    description: str
    breaking: bool = True
    migrate_tree: TreeTransform = _identity
    migrate_metadata: MetadataTransform = _identity


@dataclass
class MigrationResult:
    tree: Node
    metadata: MetadataSidecar
    applied: list[SchemaMigration] = field(default_factory=list)
    reached_target: bool = True


def rename_node_type(old: str, new: str, old_extension: str | None = None, new_extension: str | None = None,
    ) -> tuple[TreeTransform, MetadataTransform]:
    """Build (tree, metadata) transforms that rename a node type everywhere."""

    def migrate_tree(node: Node) -> Node:
        out = dict(node)
        if out.get("type") == old:
            out["type"] = new
        if "content" in out and isinstance(out["content"], list):
            out["content"] = [migrate_tree(c) if isinstance(c, dict) else c for c in children(node)]
        return out

    def migrate_metadata(metadata: MetadataSidecar) -> MetadataSidecar:
        if metadata.schema_ is None:
            return metadata
        snapshot = metadata.schema_.model_copy(update={
            "nodes": [new if n == old else n for n in metadata.schema_.nodes],
            "extensions": [
                new_extension if old_extension and e == old_extension else e
                for e in metadata.schema_.extensions
            ],
        })
        return metadata.model_copy(update={"schema_": snapshot})

    return migrate_tree, migrate_metadata


# Registry of migrations, in chain order. Add an entry for every MAJOR schema bump.
MIGRATIONS: list[SchemaMigration] = []


class MigrationEngine:
    """Walks a registered migration chain from a document's version to the current one."""

    def __init__(self, migrations: list[SchemaMigration] | None = None, current_version: str | None = None):
        self.migrations = MIGRATIONS if migrations is None else migrations
        self.current_version = current_version or get_current_schema_version()

    def _chain(self, from_version: str, to_version: str | None = None) -> list[SchemaMigration]:
        """Follow from_version through the registry until no migration matches (or to_version is hit)."""
        chain: list[SchemaMigration] = []
        seen = {from_version}
        pointer = from_version
        progressed = True
        while progressed and pointer != to_version:
            progressed = False
            for migration in self.migrations:
                if migration.from_version != pointer:
                    continue
                if migration.to_version in seen:
                    logger.warning("Migration cycle at %s -> %s; stopping", pointer, migration.to_version)
                    return chain
                chain.append(migration)
                seen.add(migration.to_version)
                pointer = migration.to_version
                progressed = True
                break
        return chain

    def apply_migrations(self, tree: Node, metadata: MetadataSidecar, strict: bool = False) -> MigrationResult:
        """Bring an older export up to the current schema version.

        Returns the inputs unchanged when metadata is already current. Otherwise
        applies each chained migration to copies of the inputs and stamps the
        current version on the result, even when the chain stops short; that case
        is logged and reported via ``reached_target`` (or raised when strict).
        """
        from_version = metadata.schema_version or DEFAULT_FROM_VERSION
        to_version = self.current_version

        if from_version == to_version:
            return MigrationResult(tree=tree, metadata=metadata)

        logger.info("Upgrading schema from %s to %s", from_version, to_version)
        breaking = [c.name for c in get_changes_between(from_version, to_version) if c.breaking]
        if breaking:
            logger.info("Found %d breaking change(s): %s", len(breaking), ", ".join(breaking))

        chain = self._chain(from_version, to_version)
        reached = bool(chain) and chain[-1].to_version == to_version
        if not reached and strict:
            raise MigrationError(f"No migration path from {from_version} to {to_version}")

        migrated_tree = copy.deepcopy(tree)
        migrated_meta = metadata.model_copy(deep=True)
        for migration in chain:
            logger.info("Applying migration: %s", migration.description)
            migrated_tree = migration.migrate_tree(migrated_tree)
            migrated_meta = migration.migrate_metadata(migrated_meta)

        if not reached:
            pointer = chain[-1].to_version if chain else from_version
            logger.warning(
                "Migration chain stopped at %s but metadata is stamped %s", pointer, to_version,
            )

        migrated_meta = migrated_meta.model_copy(update={"schema_version": to_version})
        logger.info("Migration complete. Schema now at %s", to_version)
        return MigrationResult(tree=migrated_tree, metadata=migrated_meta, applied=chain, reached_target=reached)

    def has_migration_path(self, from_version: str, to_version: str) -> bool:
        """True if the chain reaches to_version, or failing that, the versions share a major."""
        if from_version == to_version:
            return True
        chain = self._chain(from_version, to_version)
        if chain and chain[-1].to_version == to_version:
            return True
        return is_compatible_version(from_version, to_version)

    def get_migration_path(self, from_version: str, to_version: str) -> list[str]:
        """Human-readable description of each chained step."""
        return [
            f"{m.from_version} -> {m.to_version}: {m.description}"
            for m in self._chain(from_version, to_version)
        ]


def apply_migrations(tree: Node, metadata: MetadataSidecar, strict: bool = False) -> MigrationResult:
    return MigrationEngine().apply_migrations(tree, metadata, strict=strict)


def has_migration_path(from_version: str, to_version: str) -> bool:
    return MigrationEngine().has_migration_path(from_version, to_version)


def get_migration_path(from_version: str, to_version: str) -> list[str]:
    return MigrationEngine().get_migration_path(from_version, to_version)
