"""Sidecar metadata: semantic extraction from document trees and sidecar composition"""

from gardenexport.core.models import (
    CalloutRef, DocumentRecord, MetadataSidecar, SchemaSnapshot, TagRef, WikiLinkRef,
)
from gardenexport.core.nodes import Node, attrs, marks, walk
from gardenexport.core.schema import get_current_schema_version


SIDECAR_VERSION = "1.0"

# Marker node type -> extension name inferred for the document-local snapshot
EXTENSION_MARKERS: dict[str, str] = {
    "wikiLink": "WikiLink",
    "tag":      "Tag",
    "callout":  "Callout",
    "taskList": "TaskList",
    "table":    "Table",
}


def extract_wiki_links(tree: Node) -> list[WikiLinkRef]:
    """Cross-document link references in document order."""
    return [
        WikiLinkRef(
            target_title=attrs(node).get("targetTitle"),
            display_text=attrs(node).get("displayText"),
            content_id=attrs(node).get("contentId"),
        )
        for node in walk(tree)
        if node.get("type") == "wikiLink"
    ]


def extract_callouts(tree: Node) -> list[CalloutRef]:
    """Callouts with their pre-order position among all nodes (positions are sparse)."""
    callouts = []
    for position, node in enumerate(walk(tree)):
        if node.get("type") == "callout":
            callouts.append(CalloutRef(
                type=attrs(node).get("type") or "note",
                title=attrs(node).get("title"),
                position=position,
            ))
    return callouts


def extract_tags(tree: Node) -> list[TagRef]:
    """In-document tag annotations."""
    return [
        TagRef(
            tag_id=attrs(node).get("tagId"),
            tag_name=attrs(node).get("tagName"),
            color=attrs(node).get("color"),
        )
        for node in walk(tree)
        if node.get("type") == "tag"
    ]


def extract_schema_snapshot(tree: Node) -> SchemaSnapshot:
    """Distinct node and mark types actually present, in first-seen order."""
    nodes: dict[str, None] = {}
    mark_types: dict[str, None] = {}
    for node in walk(tree):
        if node.get("type"):
            nodes[node["type"]] = None
        for mark in marks(node):
            if isinstance(mark, dict) and mark.get("type"):
                mark_types[mark["type"]] = None

    extensions = [ext for marker, ext in EXTENSION_MARKERS.items() if marker in nodes]
    return SchemaSnapshot(nodes=list(nodes), marks=list(mark_types), extensions=extensions)


def generate_metadata_sidecar(record: DocumentRecord) -> MetadataSidecar:
    """Compose the sidecar for a record: record-level fields plus tree-derived semantics."""
    tree = record.tree or {"type": "doc", "content": []}
    return MetadataSidecar(
        version=SIDECAR_VERSION,
        schema_version=get_current_schema_version(),
        content_id=record.id,
        title=record.title,
        slug=record.slug,
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
        tags=list(record.tags),
        wiki_links=extract_wiki_links(tree),
        callouts=extract_callouts(tree),
        schema_=extract_schema_snapshot(tree),
        custom=dict(record.custom or {}),
    )
