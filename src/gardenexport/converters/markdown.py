"""Markdown converter with optional YAML front matter and metadata sidecar

Wiki links and tags optionally carry their ids inside HTML comments so a
re-import can recover the semantic node (see importer/markdown.py).
"""

import json

import yaml

from gardenexport.config import MarkdownExportSettings
from gardenexport.converters.base import DocumentConverter, NodeSerializer
from gardenexport.core.models import ConversionOptions, ConvertedFile, ExportFormat, MetadataSidecar
from gardenexport.core.nodes import LIST_TYPES, Mark, Node, NodeType, attrs, children, marks


# Innermost first: code spans wrap raw text, links wrap everything else
CANONICAL_MARK_ORDER = ("code", "strike", "italic", "bold", "link")

MARK_SYNTAX = {
    "bold":   ("**", "**"),
    "italic": ("*", "*"),
    "code":   ("`", "`"),
    "strike": ("~~", "~~"),
}


def _canonical_key(mark: Mark) -> int:
    mark_type = mark.get("type") if isinstance(mark, dict) else None
    return CANONICAL_MARK_ORDER.index(mark_type) if mark_type in CANONICAL_MARK_ORDER else len(CANONICAL_MARK_ORDER)


def _quote(text: str) -> str:
    return "\n".join(f"> {line}" for line in text.split("\n"))


class MarkdownSerializer(NodeSerializer):
    HANDLERS = {
        NodeType.doc:             "doc",
        NodeType.paragraph:       "inline",
        NodeType.text:            "text",
        NodeType.heading:         "heading",
        NodeType.bullet_list:     "bullet_list",
        NodeType.ordered_list:    "ordered_list",
        NodeType.list_item:       "list_item",
        NodeType.code_block:      "code_block",
        NodeType.blockquote:      "blockquote",
        NodeType.horizontal_rule: "horizontal_rule",
        NodeType.hard_break:      "hard_break",
        NodeType.table:           "table",
        NodeType.table_row:       "table_row",
        NodeType.table_cell:      "table_cell",
        NodeType.table_header:    "table_cell",
        NodeType.task_list:       "task_list",
        NodeType.task_item:       "list_item",
        NodeType.wiki_link:       "wiki_link",
        NodeType.tag:             "tag",
        NodeType.callout:         "callout",
    }

    def __init__(self, settings: MarkdownExportSettings, warnings: list[str] | None = None):
        super().__init__(warnings)
        self.settings = settings

    def doc(self, node: Node, depth: int = 0) -> str:
        return self.render_children(node, "\n\n")

    def inline(self, node: Node, depth: int = 0) -> str:
        return self.render_children(node)

    def heading(self, node: Node, depth: int = 0) -> str:
        level = attrs(node).get("level") or 1
        return "#" * int(level) + " " + self.render_children(node)

    def text(self, node: Node, depth: int = 0) -> str:
        text = node.get("text") or ""
        applied = marks(node)
        if self.settings.canonicalize_marks:
            applied = sorted(applied, key=_canonical_key)
        for mark in applied:
            mark_type = mark.get("type") if isinstance(mark, dict) else None
            if not self.check_mark(mark_type):
                continue
            if mark_type == "link":
                href = (mark.get("attrs") or {}).get("href") or ""
                text = f"[{text}]({href})"
            else:
                left, right = MARK_SYNTAX[mark_type]
                text = f"{left}{text}{right}"
        return text

    def code_block(self, node: Node, depth: int = 0) -> str:
        lang = (attrs(node).get("language") or "") if self.settings.code_block_language_prefix else ""
        code = "".join(child.get("text") or "" for child in children(node) if isinstance(child, dict))
        return f"```{lang}\n{code}\n```"

    def _items(self, node: Node, depth: int, marker) -> str:
        indent = "  " * depth
        return "\n".join(
            indent + marker(i, item) + self.render(item, depth=depth)
            for i, item in enumerate(children(node))
        )

    def bullet_list(self, node: Node, depth: int = 0) -> str:
        return self._items(node, depth, lambda i, item: "- ")

    def ordered_list(self, node: Node, depth: int = 0) -> str:
        start = int(attrs(node).get("start") or 1)
        return self._items(node, depth, lambda i, item: f"{start + i}. ")

    def task_list(self, node: Node, depth: int = 0) -> str:
        return self._items(node, depth, lambda i, item: f"- [{'x' if attrs(item).get('checked') else ' '}] ")

    def list_item(self, node: Node, depth: int = 0) -> str:
        """Inline content on the marker line; nested lists on following lines, one level deeper."""
        text_parts: list[str] = []
        nested: list[str] = []
        for child in children(node):
            if isinstance(child, dict) and child.get("type") in LIST_TYPES:
                nested.append(self.render(child, depth=depth + 1))
            else:
                text_parts.append(self.render(child, depth=depth))
        text = " ".join(text_parts)
        return text + "\n" + "\n".join(nested) if nested else text

    def blockquote(self, node: Node, depth: int = 0) -> str:
        return _quote(self.render_children(node, "\n"))

    def callout(self, node: Node, depth: int = 0) -> str:
        callout_type = attrs(node).get("type") or "note"
        title = attrs(node).get("title")
        header = f"> [!{callout_type}]" + (f" {title}" if title else "")
        body = self.render_children(node, "\n")
        return f"{header}\n{_quote(body)}"

    def horizontal_rule(self, node: Node, depth: int = 0) -> str:
        return "---"

    def hard_break(self, node: Node, depth: int = 0) -> str:
        return "  \n"

    def table(self, node: Node, depth: int = 0) -> str:
        """First row is the header; no column alignment is tracked."""
        lines: list[str] = []
        for idx, row in enumerate(r for r in children(node) if isinstance(r, dict) and r.get("type") == "tableRow"):
            cells = self._cells(row)
            lines.append(f"| {' | '.join(cells)} |")
            if idx == 0:
                lines.append(f"| {' | '.join('---' for _ in cells)} |")
        return "\n".join(lines)

    def _cells(self, row: Node) -> list[str]:
        return [self.render(cell).strip() for cell in children(row)]

    def table_row(self, node: Node, depth: int = 0) -> str:
        return f"| {' | '.join(self._cells(node))} |"

    def table_cell(self, node: Node, depth: int = 0) -> str:
        return self.render_children(node, " ")

    def wiki_link(self, node: Node, depth: int = 0) -> str:
        target = attrs(node).get("targetTitle") or ""
        display = attrs(node).get("displayText") or ""
        if self.settings.wiki_link_style != "[[]]":
            return f"[{display or target}]({target})"

        link = f"[[{target}|{display}]]" if display else f"[[{target}]]"
        if self.settings.preserve_semantics:
            return f"<!-- wikilink:{attrs(node).get('contentId') or ''} -->{link}<!-- /wikilink -->"
        return link

    def tag(self, node: Node, depth: int = 0) -> str:
        name = attrs(node).get("tagName") or ""
        if self.settings.preserve_semantics:
            tag_id = attrs(node).get("tagId") or ""
            color = attrs(node).get("color") or ""
            return f"<!-- tag:{tag_id}:{color} -->#{name}<!-- /tag -->"
        return f"#{name}"


def front_matter(metadata: MetadataSidecar) -> str:
    """YAML front matter built only from sidecar fields, so repeated exports are identical."""
    fm: dict = {"title": metadata.title}
    if metadata.slug:
        fm["slug"] = metadata.slug
    if metadata.created_at:
        fm["created"] = metadata.created_at
    if metadata.updated_at:
        fm["updated"] = metadata.updated_at
    if metadata.tags:
        fm["tags"] = [t.name for t in metadata.tags]
    header = yaml.dump(fm, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return f"---\n{header}---\n"


def to_markdown(
    tree: Node,
    settings: MarkdownExportSettings,
    metadata: MetadataSidecar | None = None,
    warnings: list[str] | None = None,
    ) -> str:
    body = MarkdownSerializer(settings, warnings).render(tree).strip()
    if settings.include_frontmatter and metadata is not None:
        return f"{front_matter(metadata)}\n{body}"
    return body


class MarkdownConverter(DocumentConverter):
    format = ExportFormat.markdown

    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        settings = options.settings.markdown
        files = [ConvertedFile.from_text(
            "document.md", to_markdown(tree, settings, options.metadata, warnings), "text/markdown",
        )]
        if settings.include_metadata and options.metadata is not None:
            sidecar = json.dumps(options.metadata.to_wire(), indent=2, ensure_ascii=False)
            files.append(ConvertedFile.from_text("document.meta.json", sidecar, "application/json"))
        return files
