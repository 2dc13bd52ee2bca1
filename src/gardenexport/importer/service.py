"""File import: markdown or lossless JSON in, a storable DocumentRecord out"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel

from gardenexport.core.errors import ImportFailedError
from gardenexport.core.migrations import apply_migrations
from gardenexport.core.models import BulkExportFilters, DocumentRecord, MetadataSidecar, ValidationWarning
from gardenexport.core.schema import get_current_schema_version, is_compatible_version
from gardenexport.core.utils.slug import unique_slug
from gardenexport.crud.repo import DocumentSource
from gardenexport.importer.markdown import extract_title, parse_markdown
from gardenexport.importer.sidecar import enrich_with_sidecar, parse_sidecar


logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = {".md", ".mdx", ".markdown"}


class ImportedDocument(BaseModel):
    title:         str
    tree:          dict[str, Any]
    frontmatter:   dict[str, Any] = {}
    warnings:      list[ValidationWarning] = []
    stats:         dict[str, int] = {}
    migrated_from: Optional[str] = None


def file_name_to_title(file_name: str | None) -> str | None:
    """'my-first_note.md' -> 'my first note'."""
    if not file_name:
        return None
    name = Path(file_name).name
    for suffix in (".meta.json", ".json", *MARKDOWN_SUFFIXES):
        if name.lower().endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name.replace("-", " ").replace("_", " ").strip() or None


def _load_json_tree(text: str) -> dict[str, Any]:
    try:
        tree = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFailedError(f"Invalid JSON: {e}") from e
    if not isinstance(tree, dict) or tree.get("type") != "doc":
        raise ImportFailedError(
            "JSON file must have root type 'doc'. This may be a .meta.json sidecar uploaded as the main file."
        )
    return tree


def import_text(text: str, file_name: str | None = None, sidecar_text: str | None = None,
                title: str | None = None, is_json: bool = False) -> ImportedDocument:
    """Parse markdown (or a lossless JSON tree), then enrich and migrate it with an optional sidecar.

    Title precedence: explicit title, front matter, sidecar, first H1 or paragraph, file name.
    """
    warnings: list[ValidationWarning] = []
    frontmatter: dict[str, Any] = {}
    stats: dict[str, int] = {}
    if is_json:
        tree = _load_json_tree(text)
    else:
        parsed = parse_markdown(text)
        tree, frontmatter, stats = parsed.tree, parsed.frontmatter, parsed.stats
        warnings.extend(parsed.warnings)

    sidecar: MetadataSidecar | None = None
    migrated_from = None
    if sidecar_text is not None:
        sidecar, sidecar_warnings = parse_sidecar(sidecar_text)
        warnings.extend(sidecar_warnings)
        if sidecar is None:
            warnings.append(ValidationWarning(
                code="SIDECAR_PARSE_FAILED",
                message="Failed to parse .meta.json sidecar; importing without metadata enrichment",
            ))
        else:
            tree, enrich_warnings = enrich_with_sidecar(tree, sidecar)
            warnings.extend(enrich_warnings)
            if sidecar.schema_version != get_current_schema_version():
                migrated_from = sidecar.schema_version
                migrated = apply_migrations(tree, sidecar)
                tree, sidecar = migrated.tree, migrated.metadata
                if not migrated.reached_target and not is_compatible_version(migrated_from):
                    warnings.append(ValidationWarning(
                        code="SCHEMA_MIGRATION_INCOMPLETE",
                        message=f"No complete migration path to schema {get_current_schema_version()}",
                        suggestion="Review the imported note for node types the editor no longer supports",
                    ))

    fm_title = frontmatter.get("title") if isinstance(frontmatter.get("title"), str) else None
    resolved = (title or fm_title or (sidecar.title if sidecar else None)
                or extract_title(tree) or file_name_to_title(file_name) or "Untitled")
    logger.info("Imported %s as %r with %d warning(s)", file_name or "text", resolved, len(warnings))
    return ImportedDocument(
        title=resolved, tree=tree, frontmatter=frontmatter, warnings=warnings,
        stats=stats, migrated_from=migrated_from,
    )


def import_file(path: Path, sidecar_path: Path | None = None, title: str | None = None) -> ImportedDocument:
    """Import a .md or .json file. A sibling '<stem>.meta.json' is used as the sidecar when none is given."""
    if path.name.endswith(".meta.json"):
        raise ImportFailedError(f"{path.name} is a metadata sidecar, not a note")
    is_json = path.suffix.lower() == ".json"
    if not is_json and path.suffix.lower() not in MARKDOWN_SUFFIXES:
        raise ImportFailedError(f"Unsupported file type: {path.suffix or path.name}")

    if sidecar_path is None and not is_json:
        sibling = path.with_name(f"{path.stem}.meta.json")
        sidecar_path = sibling if sibling.exists() else None
    sidecar_text = sidecar_path.read_text(encoding="utf-8") if sidecar_path else None
    return import_text(path.read_text(encoding="utf-8"), path.name, sidecar_text, title, is_json)


def to_record(doc: ImportedDocument, owner_id: str, source: DocumentSource | None = None,
              parent_id: str | None = None) -> DocumentRecord:
    """New DocumentRecord for an import; the slug is unique among the owner's notes in source."""
    taken: set[str] = set()
    if source is not None:
        taken = {r.slug for r in source.find_documents(owner_id, BulkExportFilters(include_deleted=True))}
    now = datetime.now()
    return DocumentRecord(
        id=uuid4().hex,
        owner_id=owner_id,
        title=doc.title,
        slug=unique_slug(doc.title, taken),
        parent_id=parent_id,
        created_at=now,
        updated_at=now,
        tree=doc.tree,
    )
