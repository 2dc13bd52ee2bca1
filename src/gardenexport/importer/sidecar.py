"""Reading .meta.json sidecars back, and restoring tag identity on imported trees"""

import copy
import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from gardenexport.core.models import (
    CalloutRef, MetadataSidecar, SchemaSnapshot, SidecarTag, ValidationWarning, WikiLinkRef,
)
from gardenexport.core.nodes import Node, attrs, children


logger = logging.getLogger(__name__)

DEFAULT_SIDECAR_VERSION = "1.0"
DEFAULT_SCHEMA_VERSION = "1.0.0"


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _entries(raw: Any, model: type[BaseModel], field: str, warnings: list[ValidationWarning]) -> list:
    """Validate list entries one by one; malformed entries are dropped with a single warning."""
    items, dropped = [], 0
    for entry in raw or []:
        try:
            items.append(model.model_validate(entry))
        except ValidationError:
            dropped += 1
    if dropped:
        warnings.append(ValidationWarning(
            code="SIDECAR_INVALID_ENTRY",
            message=f"Dropped {dropped} malformed '{field}' entr{'y' if dropped == 1 else 'ies'}",
        ))
    return items


def _tag(entry: Any) -> SidecarTag | None:
    if not isinstance(entry, dict):
        return None
    name = _str(entry.get("name")) or _str(entry.get("slug"))
    return SidecarTag(
        id=_str(entry.get("id")),
        name=name,
        slug=_str(entry.get("slug")),
        color=entry.get("color") if isinstance(entry.get("color"), str) else None,
    )


def parse_sidecar(content: str) -> tuple[MetadataSidecar | None, list[ValidationWarning]]:
    """Parse sidecar JSON leniently. Returns (None, []) when content is not a JSON object."""
    try:
        raw = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return None, []
    if not isinstance(raw, dict):
        return None, []

    warnings: list[ValidationWarning] = []
    if not _str(raw.get("version")):
        warnings.append(ValidationWarning(code="SIDECAR_MISSING_VERSION", message="Sidecar is missing 'version' field"))
    if not _str(raw.get("schemaVersion")):
        warnings.append(ValidationWarning(
            code="SIDECAR_MISSING_SCHEMA_VERSION",
            message="Sidecar is missing 'schemaVersion' field",
            suggestion="Tag enrichment will still work but schema compatibility cannot be verified",
        ))

    tags = raw.get("tags")
    if tags is not None and not isinstance(tags, list):
        warnings.append(ValidationWarning(code="SIDECAR_INVALID_TAGS", message="Sidecar 'tags' field is not an array"))
        tags = []
    wiki_links = raw.get("wikiLinks")
    if wiki_links is not None and not isinstance(wiki_links, list):
        warnings.append(ValidationWarning(
            code="SIDECAR_INVALID_WIKILINKS",
            message="Sidecar 'wikiLinks' field is not an array",
        ))
        wiki_links = []
    callouts = raw.get("callouts") if isinstance(raw.get("callouts"), list) else []

    schema = None
    if isinstance(raw.get("schema"), dict):
        try:
            schema = SchemaSnapshot.model_validate(raw["schema"])
        except ValidationError:
            logger.debug("Ignoring malformed sidecar schema snapshot")

    sidecar = MetadataSidecar(
        version=_str(raw.get("version")) or DEFAULT_SIDECAR_VERSION,
        schema_version=_str(raw.get("schemaVersion")) or DEFAULT_SCHEMA_VERSION,
        content_id=_str(raw.get("contentId")),
        title=_str(raw.get("title")),
        slug=_str(raw.get("slug")),
        created_at=_str(raw.get("createdAt")),
        updated_at=_str(raw.get("updatedAt")),
        tags=[t for t in map(_tag, tags or []) if t is not None],
        wiki_links=_entries(wiki_links, WikiLinkRef, "wikiLinks", warnings),
        callouts=_entries(callouts, CalloutRef, "callouts", warnings),
        schema_=schema,
        custom=raw.get("custom") if isinstance(raw.get("custom"), dict) else {},
    )
    return sidecar, warnings


def _enrich(node: Node, lookup: dict[str, SidecarTag], warnings: list[ValidationWarning]) -> None:
    if node.get("type") == "tag" and isinstance(node.get("attrs"), dict):
        slug = attrs(node).get("slug")
        tag = lookup.get(slug) if slug else None
        if tag is not None:
            node["attrs"]["tagId"] = tag.id
            node["attrs"]["color"] = tag.color
        elif slug:
            warnings.append(ValidationWarning(
                code="SIDECAR_TAG_NOT_FOUND",
                message=f'Tag "{slug}" not found in sidecar; it will be created as new on save',
            ))
    for child in children(node):
        if isinstance(child, dict):
            _enrich(child, lookup, warnings)


def enrich_with_sidecar(tree: Node, sidecar: MetadataSidecar) -> tuple[Node, list[ValidationWarning]]:
    """Return a copy of tree whose tag nodes carry the sidecar's tag ids and colors (matched by slug)."""
    warnings: list[ValidationWarning] = []
    lookup = {t.slug: t for t in sidecar.tags if t.slug and t.id}
    if not lookup and sidecar.tags:
        warnings.append(ValidationWarning(
            code="SIDECAR_NO_VALID_TAGS",
            message=f"Sidecar has {len(sidecar.tags)} tags but none have valid slug + id",
        ))
    enriched = copy.deepcopy(tree)
    _enrich(enriched, lookup, warnings)
    return enriched, warnings
