"""Root test configuration: shared document fixtures and session-level cleanup of runtime artifacts"""

import copy
import shutil
from datetime import datetime
from pathlib import Path

import pytest

from gardenexport.core.models import DocumentRecord, SidecarTag


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_FILES = ["gardenexport.db", "test.db"]
_CLEANUP_DIRS = ["dist"]


SAMPLE_TREE = {
    "type": "doc",
    "content": [
        {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Garden Notes"}]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "See "},
            {"type": "wikiLink", "attrs": {"targetTitle": "Other Note", "displayText": None, "contentId": "n2"}},
            {"type": "text", "text": " and "},
            {"type": "tag", "attrs": {"tagId": "t1", "tagName": "work", "slug": "work", "color": "#ff0000"}},
            {"type": "text", "text": " for "},
            {"type": "text", "text": "bold", "marks": [{"type": "bold"}]},
            {"type": "text", "text": " ideas."},
        ]},
        {"type": "callout", "attrs": {"type": "warning", "title": "Careful"}, "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": "Mind the gap."}]},
        ]},
        {"type": "codeBlock", "attrs": {"language": "python"}, "content": [{"type": "text", "text": "print('hi')"}]},
    ],
}


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove DB files and output directories created during the test session."""
    yield
    for name in _CLEANUP_FILES:
        p = _PROJECT_ROOT / name
        if p.exists():
            p.unlink()
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)


@pytest.fixture(name="sample_tree")
def sample_tree_fixture():
    """A note using headings, wiki-links, tags, marks, a callout, and a code block."""
    return copy.deepcopy(SAMPLE_TREE)


@pytest.fixture(name="make_record")
def make_record_fixture():
    """Factory for DocumentRecords; tree defaults to a one-paragraph note."""
    def _make(id: str, owner_id: str = "u1", title: str | None = None, slug: str | None = None,
              parent_id: str | None = None, tree=..., created: datetime | None = None, **extra) -> DocumentRecord:
        if tree is ...:
            tree = {"type": "doc", "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": f"Body of {id}"}]},
            ]}
        stamp = created or datetime(2024, 1, 1, 12, 0, 0)
        return DocumentRecord(
            id=id,
            owner_id=owner_id,
            title=title or f"Note {id}",
            slug=slug or f"note-{id}",
            parent_id=parent_id,
            created_at=stamp,
            updated_at=stamp,
            tree=tree,
            **extra,
        )
    return _make


@pytest.fixture(name="tag")
def tag_fixture():
    return SidecarTag(id="t1", name="Work", slug="work", color="#ff0000")


@pytest.fixture(name="deep_tree")
def deep_tree_fixture():
    """A valid note nested 1200 blockquotes deep, past the interpreter's default recursion limit."""
    node = {"type": "paragraph", "content": [{"type": "text", "text": "bottom"}]}
    for _ in range(1200):
        node = {"type": "blockquote", "content": [node]}
    return {"type": "doc", "content": [node]}
