"""Markdown import: front matter extraction and markdown-it tokens to a document tree

Block structure comes from markdown-it's token stream. Inline text is scanned a second
time for the garden's own syntax: ``[[Title|Display]]`` wiki-links and ``#tag`` labels,
optionally wrapped in the semantic HTML comments the Markdown converter writes.
"""

import re
from typing import Any

import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token
from pydantic import BaseModel

from gardenexport.core.models import ValidationWarning
from gardenexport.core.nodes import Node, attrs, children, walk


FRONTMATTER_RE = re.compile(r'^---\s*\n(.*?)\n---\s*(?:\n|$)', re.DOTALL)
CALLOUT_RE = re.compile(r'^\[!(note|tip|warning|danger|info|success)\]\s*(.*)$', re.IGNORECASE)
TASK_RE = re.compile(r'^\[([ xX])\]\s+')
WIKILINK_RE = re.compile(r'\[\[([^\]]+)\]\]')
TAG_RE = re.compile(r'(?<!\S)#([a-zA-Z0-9][a-zA-Z0-9_-]{1,49})\b')
INLINE_RE = re.compile(f"{WIKILINK_RE.pattern}|{TAG_RE.pattern}")
SEMANTIC_TAG_RE = re.compile(r'^<!-- tag:([^:]*):?(.*?) -->$')
SEMANTIC_WIKILINK_RE = re.compile(r'^<!-- wikilink:([^ ]*) -->$')
SEMANTIC_CLOSE = ("<!-- /tag -->", "<!-- /wikilink -->")
SEMANTIC_BLOCK_PREFIXES = ("<!-- tag:", "<!-- wikilink:")

MARK_OPENERS = {"strong_open": "bold", "em_open": "italic", "s_open": "strike", "link_open": "link"}
MARK_CLOSERS = {"strong_close": "bold", "em_close": "italic", "s_close": "strike", "link_close": "link"}

# markdown-it container token -> tree node type
BLOCK_NODES = {
    "paragraph":    "paragraph",
    "heading":      "heading",
    "bullet_list":  "bulletList",
    "ordered_list": "orderedList",
    "list_item":    "listItem",
    "blockquote":   "blockquote",
    "table":        "table",
    "tr":           "tableRow",
    "th":           "tableHeader",
    "td":           "tableCell",
}
TRANSPARENT_BLOCKS = {"thead", "tbody"}


class ImportResult(BaseModel):
    tree:        dict[str, Any]
    frontmatter: dict[str, Any] = {}
    warnings:    list[ValidationWarning] = []
    stats:       dict[str, int] = {}


def _make_parser(preset: str = "gfm-like") -> MarkdownIt:
    return MarkdownIt(preset, options_update={"linkify": False})


def _strip_frontmatter(text: str, warnings: list[ValidationWarning]) -> tuple[dict[str, Any], str]:
    """Return (frontmatter_dict, body). Problems are reported as warnings and the text kept as body."""
    if not text.startswith("---"):
        return {}, text
    m = FRONTMATTER_RE.match(text)
    if not m:
        warnings.append(ValidationWarning(
            code="UNCLOSED_FRONTMATTER",
            message="Front matter opened with '---' but never closed; treated as document text",
        ))
        return {}, text
    try:
        fm = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as e:
        warnings.append(ValidationWarning(code="INVALID_FRONTMATTER", message=f"Invalid YAML front matter: {e}"))
        return {}, text[m.end():]
    if not isinstance(fm, dict):
        warnings.append(ValidationWarning(
            code="INVALID_FRONTMATTER",
            message=f"Front matter must be a mapping, got {type(fm).__name__}",
        ))
        return {}, text[m.end():]
    return fm, text[m.end():]


def _text(value: str, mark_stack: list[dict]) -> Node:
    node: Node = {"type": "text", "text": value}
    if mark_stack:
        # innermost first, matching the converters' wrapping order
        node["marks"] = [dict(m) for m in reversed(mark_stack)]
    return node


def _split_wiki(inner: str) -> tuple[str, str | None]:
    target, _, display = inner.partition("|")
    return target, (display or None)


class _InlineBuilder:
    """Turns the children of one markdown-it ``inline`` token into tree nodes."""

    def __init__(self):
        self.nodes: list[Node] = []
        self.marks: list[dict] = []
        self.buffer: list[str] = []
        self.buffer_marks: list[dict] = []
        self.wikilink_id: str | None = None
        self.tag_id: str | None = None
        self.tag_color: str | None = None

    def flush(self) -> None:
        if not self.buffer:
            return
        text = "".join(self.buffer)
        marks_at = self.buffer_marks
        self.buffer = []
        if any(m["type"] == "code" for m in marks_at):
            self.nodes.append(_text(text, marks_at))
            return
        self._scan(text, marks_at)

    def _scan(self, text: str, marks_at: list[dict]) -> None:
        pos = 0
        for m in INLINE_RE.finditer(text):
            if m.start() > pos:
                self.nodes.append(_text(text[pos:m.start()], marks_at))
            if m.group(1) is not None:
                target, display = _split_wiki(m.group(1))
                node_attrs = {"targetTitle": target, "displayText": display}
                if self.wikilink_id:
                    node_attrs["contentId"] = self.wikilink_id
                self.nodes.append({"type": "wikiLink", "attrs": node_attrs})
            else:
                name = m.group(2)
                self.nodes.append({"type": "tag", "attrs": {
                    "tagId": self.tag_id or "",
                    "tagName": name,
                    "slug": name.lower(),
                    "color": self.tag_color,
                }})
            pos = m.end()
        if pos < len(text):
            self.nodes.append(_text(text[pos:], marks_at))

    def push_text(self, value: str) -> None:
        if self.buffer and self.buffer_marks != self.marks:
            self.flush()
        self.buffer_marks = list(self.marks)
        self.buffer.append(value)

    def html(self, content: str) -> None:
        self.flush()
        content = content.strip()
        if m := SEMANTIC_TAG_RE.match(content):
            self.tag_id, self.tag_color = m.group(1) or "", m.group(2) or None
        elif m := SEMANTIC_WIKILINK_RE.match(content):
            self.wikilink_id = m.group(1) or None
        elif content == SEMANTIC_CLOSE[0]:
            self.tag_id = self.tag_color = None
        elif content == SEMANTIC_CLOSE[1]:
            self.wikilink_id = None
        else:
            self.push_text(content)

    def build(self, tokens: list[Token]) -> list[Node]:
        for tok in tokens:
            if tok.type == "text":
                self.push_text(tok.content)
            elif tok.type == "softbreak":
                self.push_text(" ")
            elif tok.type == "hardbreak":
                self.flush()
                self.nodes.append({"type": "hardBreak"})
            elif tok.type == "code_inline":
                self.flush()
                self.nodes.append(_text(tok.content, self.marks + [{"type": "code"}]))
            elif tok.type in MARK_OPENERS:
                self.flush()
                mark: dict = {"type": MARK_OPENERS[tok.type]}
                if tok.type == "link_open":
                    mark["attrs"] = {"href": tok.attrGet("href") or ""}
                self.marks.append(mark)
            elif tok.type in MARK_CLOSERS:
                self.flush()
                for i in range(len(self.marks) - 1, -1, -1):
                    if self.marks[i]["type"] == MARK_CLOSERS[tok.type]:
                        del self.marks[i]
                        break
            elif tok.type == "html_inline":
                self.html(tok.content)
            elif tok.type == "image":
                self.flush()
                src = tok.attrGet("src") or ""
                alt = "".join(c.content for c in tok.children or []) or src
                self.nodes.append(_text(alt, self.marks + [{"type": "link", "attrs": {"href": src}}]))
            else:
                self.push_text(tok.content)
        self.flush()
        return self.nodes


def parse_inline(tokens: list[Token]) -> list[Node]:
    return _InlineBuilder().build(tokens)


class MarkdownImporter:
    """Builds a document tree from markdown text."""

    def __init__(self, preset: str = "gfm-like"):
        self.md = _make_parser(preset)

    def parse(self, text: str) -> ImportResult:
        warnings: list[ValidationWarning] = []
        frontmatter, body = _strip_frontmatter(text, warnings)
        tokens = self.md.parse(body)
        tree = self._build(tokens, body.splitlines(), warnings)
        _promote_task_lists(tree)
        return ImportResult(tree=tree, frontmatter=frontmatter, warnings=warnings, stats=_stats(tree))

    def _build(self, tokens: list[Token], lines: list[str], warnings: list[ValidationWarning]) -> Node:
        root: Node = {"type": "doc", "content": []}
        stack: list[Node] = [root]
        callout_headers: set[int] = set()

        def append(node: Node) -> None:
            stack[-1].setdefault("content", []).append(node)

        for idx, tok in enumerate(tokens):
            base = tok.type.rsplit("_", 1)[0]
            if base in TRANSPARENT_BLOCKS:
                continue

            if tok.type == "blockquote_open":
                node = self._callout(tokens, idx, callout_headers) or {"type": "blockquote", "content": []}
                append(node)
                stack.append(node)
            elif tok.nesting == 1 and base in BLOCK_NODES:
                node = {"type": BLOCK_NODES[base], "content": []}
                if base == "heading":
                    node["attrs"] = {"level": int(tok.tag[1:])}
                elif base == "ordered_list":
                    node["attrs"] = {"start": int(tok.attrGet("start") or 1)}
                elif base in ("th", "td"):
                    node["attrs"] = {"colspan": 1, "rowspan": 1}
                append(node)
                stack.append(node)
            elif tok.nesting == -1 and (base in BLOCK_NODES or base == "blockquote"):
                node = stack.pop()
                if node.pop("_drop", False):
                    stack[-1]["content"].remove(node)
            elif tok.type == "inline":
                self._inline(tok, idx, stack, callout_headers)
            elif tok.type in ("fence", "code_block"):
                append(self._code_block(tok, lines, warnings))
            elif tok.type == "hr":
                append({"type": "horizontalRule"})
            elif tok.type == "html_block":
                append(self._html_block(tok, warnings))
        return root

    def _inline(self, tok: Token, idx: int, stack: list[Node], callout_headers: set[int]) -> None:
        parent = stack[-1]
        tokens = tok.children or []
        if idx in callout_headers:
            breaks = [i for i, c in enumerate(tokens) if c.type in ("softbreak", "hardbreak")]
            tokens = tokens[breaks[0] + 1:] if breaks else []
            if not tokens:
                parent["_drop"] = True
                return
        nodes = parse_inline(tokens)
        if parent["type"] in ("tableCell", "tableHeader"):
            parent["content"].append({"type": "paragraph", "content": nodes})
        else:
            parent.setdefault("content", []).extend(nodes)

    def _callout(self, tokens: list[Token], idx: int, callout_headers: set[int]) -> Node | None:
        if idx + 2 >= len(tokens) or tokens[idx + 1].type != "paragraph_open" or tokens[idx + 2].type != "inline":
            return None
        first_line = tokens[idx + 2].content.split("\n", 1)[0]
        m = CALLOUT_RE.match(first_line)
        if not m:
            return None
        callout_headers.add(idx + 2)
        return {"type": "callout", "attrs": {"type": m.group(1).lower(), "title": m.group(2).strip() or None},
                "content": []}

    def _code_block(self, tok: Token, lines: list[str], warnings: list[ValidationWarning]) -> Node:
        language = tok.info.strip().split(" ", 1)[0] if tok.type == "fence" else ""
        if tok.type == "fence" and tok.map:
            last = tok.map[1] - 1
            closed = tok.map[0] < last < len(lines) and lines[last].strip().startswith(tok.markup)
            if not closed:
                warnings.append(ValidationWarning(
                    code="UNCLOSED_CODE_BLOCK",
                    message=f"Code block opened on line {tok.map[0] + 1} is never closed",
                    suggestion=f"Add a closing {tok.markup} line",
                ))
        code = tok.content[:-1] if tok.content.endswith("\n") else tok.content
        node: Node = {"type": "codeBlock", "attrs": {"language": language}}
        if code:
            node["content"] = [{"type": "text", "text": code}]
        return node

    def _html_block(self, tok: Token, warnings: list[ValidationWarning]) -> Node:
        """Lines starting with a semantic comment are inline content; other raw HTML is kept as text."""
        content = tok.content.rstrip("\n")
        if content.lstrip().startswith(SEMANTIC_BLOCK_PREFIXES):
            inline = self.md.parseInline(content)
            return {"type": "paragraph", "content": parse_inline(inline[0].children or [])}
        warnings.append(ValidationWarning(
            code="RAW_HTML",
            message="Raw HTML block imported as plain text",
        ))
        return {"type": "paragraph", "content": [{"type": "text", "text": content}]} if content else {"type": "paragraph"}


def _first_text(item: Node) -> Node | None:
    paragraphs = [c for c in children(item) if c.get("type") == "paragraph"]
    if not paragraphs:
        return None
    inline = children(paragraphs[0])
    return inline[0] if inline and inline[0].get("type") == "text" else None


def _promote_task_lists(tree: Node) -> None:
    """A bullet list whose every item starts with '[ ]' or '[x]' becomes a task list."""
    for node in list(walk(tree)):
        if node.get("type") != "bulletList" or not children(node):
            continue
        firsts = [_first_text(item) for item in children(node)]
        if not all(t is not None and TASK_RE.match(t.get("text", "")) for t in firsts):
            continue
        node["type"] = "taskList"
        for item, first in zip(children(node), firsts):
            m = TASK_RE.match(first["text"])
            item["type"] = "taskItem"
            item["attrs"] = {"checked": m.group(1).lower() == "x"}
            first["text"] = first["text"][m.end():]
            if not first["text"]:
                paragraph = next(c for c in children(item) if c.get("type") == "paragraph")
                paragraph["content"].remove(first)


def _stats(tree: Node) -> dict[str, int]:
    counts = {"blocks": len(children(tree)), "wikiLinks": 0, "tags": 0, "callouts": 0}
    keys = {"wikiLink": "wikiLinks", "tag": "tags", "callout": "callouts"}
    for node in walk(tree):
        if node.get("type") in keys:
            counts[keys[node["type"]]] += 1
    return counts


def extract_title(tree: Node) -> str | None:
    """Text of the first level-1 heading, else the first paragraph with text (at most 100 chars)."""
    def plain(node: Node) -> str:
        return "".join(c.get("text") or "" for c in children(node) if c.get("type") == "text").strip()

    for node in children(tree):
        if node.get("type") == "heading" and attrs(node).get("level") == 1 and plain(node):
            return plain(node)
    for node in children(tree):
        if node.get("type") == "paragraph" and plain(node):
            return plain(node)[:100]
    return None


def parse_markdown(text: str) -> ImportResult:
    return MarkdownImporter().parse(text)
