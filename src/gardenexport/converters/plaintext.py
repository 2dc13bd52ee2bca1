"""Plain text converter: leaf text only, with line breaks between blocks"""

from typing import Any

from gardenexport.converters.base import DocumentConverter
from gardenexport.core.models import ConversionOptions, ConvertedFile, ExportFormat
from gardenexport.core.nodes import NODE_TYPES, Node, children, is_block


PARAGRAPH_TYPES = ("heading", "paragraph")


def extract_plain_text(node: Node, unknown: set[str] | None = None) -> str:
    """Concatenate leaf text depth-first.

    One newline follows every block-level child; headings and paragraphs add a
    second so adjacent blocks are separated by a blank line. A node that contains
    itself is read once.
    """
    parts: list[str] = []
    active: set[int] = set()
    # entries: ("node", n), ("text", s) or ("leave", id)
    stack: list[tuple[str, Any]] = [("node", node)]
    while stack:
        kind, item = stack.pop()
        if kind == "text":
            parts.append(item)
            continue
        if kind == "leave":
            active.discard(item)
            continue
        if not isinstance(item, dict) or id(item) in active:
            continue
        active.add(id(item))
        node_type = item.get("type")
        if unknown is not None and node_type and node_type not in NODE_TYPES:
            unknown.add(node_type)

        parts.append(item.get("text") or "")
        stack.append(("leave", id(item)))
        if node_type in PARAGRAPH_TYPES:
            stack.append(("text", "\n"))
        for child in reversed(children(item)):
            if isinstance(child, dict) and is_block(child.get("type")):
                stack.append(("text", "\n"))
            stack.append(("node", child))
    return "".join(parts)


class PlainTextConverter(DocumentConverter):
    format = ExportFormat.txt

    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        unknown: set[str] = set()
        text = extract_plain_text(tree, unknown)
        warnings.extend(f"UNRECOGNIZED_NODE: '{t}' rendered as its children" for t in sorted(unknown))
        return [ConvertedFile.from_text("document.txt", text, "text/plain")]
