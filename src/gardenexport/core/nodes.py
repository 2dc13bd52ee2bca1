"""Node and mark kinds of the document tree, plus small traversal helpers

Trees are plain JSON-compatible dicts (``{"type", "attrs", "marks", "content", "text"}``)
so they round-trip through the lossless format untouched. The enums below are the
closed set of kinds every converter must handle.
"""

from enum import Enum
from typing import Any, Iterator


Node = dict[str, Any]
Mark = dict[str, Any]


class NodeType(str, Enum):
    """Node kinds understood by the installed converters"""
    doc = "doc"
    paragraph = "paragraph"
    text = "text"
    heading = "heading"
    bullet_list = "bulletList"
    ordered_list = "orderedList"
    list_item = "listItem"
    code_block = "codeBlock"
    blockquote = "blockquote"
    horizontal_rule = "horizontalRule"
    hard_break = "hardBreak"
    table = "table"
    table_row = "tableRow"
    table_cell = "tableCell"
    table_header = "tableHeader"
    task_list = "taskList"
    task_item = "taskItem"
    wiki_link = "wikiLink"
    tag = "tag"
    callout = "callout"


class MarkType(str, Enum):
    """Inline mark kinds understood by the installed converters"""
    bold = "bold"
    italic = "italic"
    strike = "strike"
    code = "code"
    link = "link"


NODE_TYPES = frozenset(t.value for t in NodeType)
MARK_TYPES = frozenset(m.value for m in MarkType)

LIST_TYPES = frozenset({NodeType.bullet_list.value, NodeType.ordered_list.value, NodeType.task_list.value})

BLOCK_TYPES = frozenset({
    "paragraph",
    "heading",
    "codeBlock",
    "blockquote",
    "bulletList",
    "orderedList",
    "listItem",
    "horizontalRule",
    "table",
    "callout",
})


def node_kind(node: Node) -> NodeType | None:
    """Return the NodeType for node, or None for kinds outside the catalog."""
    try:
        return NodeType(node.get("type"))
    except ValueError:
        return None


def children(node: Node) -> list[Node]:
    content = node.get("content")
    return content if isinstance(content, list) else []


def attrs(node: Node) -> dict[str, Any]:
    value = node.get("attrs")
    return value if isinstance(value, dict) else {}


def marks(node: Node) -> list[Mark]:
    value = node.get("marks")
    return value if isinstance(value, list) else []


def walk(node: Node) -> Iterator[Node]:
    """Yield node and every descendant in pre-order. A node that contains itself is visited once.

    Uses an explicit stack, so nesting depth is not bounded by the recursion limit.
    Children are read after their parent is yielded.
    """
    active: set[int] = set()
    stack: list[tuple[Any, bool]] = [(node, False)]
    while stack:
        current, leaving = stack.pop()
        if leaving:
            active.discard(id(current))
            continue
        if not isinstance(current, dict) or id(current) in active:
            continue
        active.add(id(current))
        yield current
        stack.append((current, True))
        stack.extend((child, False) for child in reversed(children(current)))


def is_block(node_type: str | None) -> bool:
    return node_type in BLOCK_TYPES
