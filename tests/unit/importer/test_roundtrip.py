"""Unit tests for importer/roundtrip.py"""

from gardenexport.config import MarkdownExportSettings
from gardenexport.converters.markdown import to_markdown
from gardenexport.importer.markdown import parse_markdown
from gardenexport.importer.roundtrip import DifferenceCategory, verify_round_trip


def _doc(*blocks) -> dict:
    return {"type": "doc", "content": list(blocks)}


def _para(*inline) -> dict:
    return {"type": "paragraph", "content": list(inline)}


def _text(value: str, *mark_types: str) -> dict:
    node = {"type": "text", "text": value}
    if mark_types:
        node["marks"] = [{"type": t} for t in mark_types]
    return node


def _categories(report) -> list[DifferenceCategory]:
    return [d.category for d in report.differences]


def test_identical_trees(sample_tree):
    report = verify_round_trip(sample_tree, sample_tree)
    assert report.identical
    assert (report.lossless_count, report.cosmetic_count, report.semantic_count) == (0, 0, 0)


def test_type_mismatch_is_semantic_and_stops():
    report = verify_round_trip(_doc(_para(_text("a"))), _doc({"type": "heading", "content": [_text("b")]}))
    assert _categories(report) == [DifferenceCategory.semantic]
    assert report.differences[0].path == "doc.content[0].type"


def test_whitespace_is_cosmetic_other_text_is_semantic():
    assert _categories(verify_round_trip(_doc(_para(_text("a "))), _doc(_para(_text("a"))))) == [
        DifferenceCategory.cosmetic,
    ]
    assert _categories(verify_round_trip(_doc(_para(_text("a"))), _doc(_para(_text("b"))))) == [
        DifferenceCategory.semantic,
    ]


def test_mark_order_is_cosmetic():
    report = verify_round_trip(_doc(_para(_text("x", "bold", "italic"))), _doc(_para(_text("x", "italic", "bold"))))
    assert _categories(report) == [DifferenceCategory.cosmetic]
    assert report.semantic_count == 0


def test_lost_mark_is_semantic_extra_mark_cosmetic():
    lost = verify_round_trip(_doc(_para(_text("x", "bold"))), _doc(_para(_text("x"))))
    assert _categories(lost) == [DifferenceCategory.semantic]
    extra = verify_round_trip(_doc(_para(_text("x"))), _doc(_para(_text("x", "code"))))
    assert _categories(extra) == [DifferenceCategory.cosmetic]


def test_changed_link_target_is_semantic():
    def linked(href):
        return _doc(_para({"type": "text", "text": "x", "marks": [{"type": "link", "attrs": {"href": href}}]}))

    assert _categories(verify_round_trip(linked("a"), linked("b"))) == [DifferenceCategory.semantic]


def test_attribute_classification():
    def heading(**a):
        return _doc({"type": "heading", "attrs": a, "content": [_text("T")]})

    assert _categories(verify_round_trip(heading(level=1), heading(level=2))) == [DifferenceCategory.semantic]
    assert _categories(verify_round_trip(heading(level=1, id="x"), heading(level=1))) == [DifferenceCategory.cosmetic]


def test_equivalent_code_languages():
    def code(language):
        return _doc({"type": "codeBlock", "attrs": {"language": language}, "content": [_text("x")]})

    assert verify_round_trip(code("plaintext"), code("")).identical
    assert verify_round_trip(code(None), code("")).identical
    assert not verify_round_trip(code("js"), code("")).identical


def test_missing_children_are_semantic():
    report = verify_round_trip(_doc(_para(_text("a")), _para(_text("b"))), _doc(_para(_text("a"))))
    assert _categories(report) == [DifferenceCategory.semantic]
    assert report.differences[0].path == "doc.content.length"


def test_markdown_export_reimport_keeps_semantics(sample_tree):
    """Wiki-link ids, tag ids and colors, callouts and code languages survive a markdown round trip."""
    settings = MarkdownExportSettings(include_frontmatter=False)
    reimported = parse_markdown(to_markdown(sample_tree, settings)).tree
    report = verify_round_trip(sample_tree, reimported)
    assert report.semantic_count == 0, report.differences


def test_round_trip_without_semantic_comments_loses_ids(sample_tree):
    settings = MarkdownExportSettings(include_frontmatter=False, preserve_semantics=False)
    reimported = parse_markdown(to_markdown(sample_tree, settings)).tree
    report = verify_round_trip(sample_tree, reimported)
    paths = {d.path for d in report.differences if d.category == DifferenceCategory.semantic}
    assert "doc.content[1].content[3].attrs.tagId" in paths
