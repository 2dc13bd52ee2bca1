"""Unit tests for core/metadata.py"""

from gardenexport.core.metadata import (
    extract_callouts, extract_schema_snapshot, extract_tags, extract_wiki_links, generate_metadata_sidecar,
)
from gardenexport.core.schema import get_current_schema_version


def test_extract_wiki_links(sample_tree):
    links = extract_wiki_links(sample_tree)
    assert len(links) == 1
    assert links[0].target_title == "Other Note"
    assert links[0].content_id == "n2"


def test_extract_tags(sample_tree):
    tags = extract_tags(sample_tree)
    assert [(t.tag_id, t.tag_name, t.color) for t in tags] == [("t1", "work", "#ff0000")]


def test_extract_callouts_uses_preorder_position(sample_tree):
    """Position counts every node visited before the callout, not just block siblings."""
    callouts = extract_callouts(sample_tree)
    assert len(callouts) == 1
    # doc, heading, text, paragraph, 7 inline children -> callout is the 12th node
    assert callouts[0].position == 11
    assert callouts[0].type == "warning"
    assert callouts[0].title == "Careful"


def test_extract_callout_defaults_type_to_note():
    tree = {"type": "doc", "content": [{"type": "callout", "content": []}]}
    assert extract_callouts(tree)[0].type == "note"


def test_extract_schema_snapshot_first_seen_order(sample_tree):
    snapshot = extract_schema_snapshot(sample_tree)
    assert snapshot.nodes[:4] == ["doc", "heading", "text", "paragraph"]
    assert snapshot.marks == ["bold"]
    assert snapshot.extensions == ["WikiLink", "Tag", "Callout"]


def test_generate_metadata_sidecar(make_record, sample_tree, tag):
    record = make_record("n1", tree=sample_tree, tags=[tag], custom={"pinned": True})
    sidecar = generate_metadata_sidecar(record)
    assert sidecar.schema_version == get_current_schema_version()
    assert sidecar.content_id == "n1"
    assert sidecar.tags == [tag]
    assert sidecar.custom == {"pinned": True}
    assert sidecar.created_at == "2024-01-01T12:00:00"


def test_sidecar_wire_form_uses_camel_case(make_record, sample_tree):
    wire = generate_metadata_sidecar(make_record("n1", tree=sample_tree)).to_wire()
    assert {"schemaVersion", "contentId", "createdAt", "wikiLinks", "schema"} <= set(wire)
    assert wire["wikiLinks"][0]["targetTitle"] == "Other Note"
    assert wire["callouts"][0]["position"] == 11


def test_sidecar_for_record_without_tree(make_record):
    """Non-note records get an empty semantic section instead of failing."""
    sidecar = generate_metadata_sidecar(make_record("f1", tree=None))
    assert sidecar.wiki_links == [] and sidecar.callouts == []
    assert sidecar.schema_.nodes == ["doc"]


def test_sidecar_for_deeply_nested_note(make_record, deep_tree):
    sidecar = generate_metadata_sidecar(make_record("n1", tree=deep_tree))
    assert sidecar.schema_.nodes == ["doc", "blockquote", "paragraph", "text"]
