"""Fragment renderers for the HTML converter

TreeHtmlRenderer reproduces the markup the editor itself produces (data-type
attributes, wiki-link spans, tag pills, callout divs) so on-screen and exported
rendering stay consistent. Another renderer can be plugged into HtmlConverter.
"""

from abc import ABC, abstractmethod
from html import escape

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from gardenexport.converters.base import NodeSerializer
from gardenexport.core.nodes import Node, NodeType, attrs, children, marks


DEFAULT_TAG_COLOR = "#3b82f6"

LINK_ATTRS = 'target="_blank" rel="noopener noreferrer nofollow"'

MARK_TAGS = {
    "bold":   "strong",
    "italic": "em",
    "strike": "s",
    "code":   "code",
}


class NodeRenderer(ABC):
    """Renders a whole tree to an HTML fragment."""

    @abstractmethod
    def render(self, tree: Node, warnings: list[str]) -> str:
        raise NotImplementedError


def _attr_string(values: dict) -> str:
    return "".join(f' {k}="{escape(str(v), quote=True)}"' for k, v in values.items() if v is not None and v != "")


def _element(tag: str, inner: str, **values) -> str:
    return f"<{tag}{_attr_string(values)}>{inner}</{tag}>"


def highlight_code(code: str, language: str | None) -> str | None:
    """Pygments markup for a code block, or None when the language has no lexer."""
    if not isinstance(language, str) or not language:
        return None
    try:
        lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
    except ClassNotFound:
        return None
    formatter = HtmlFormatter(cssclass=f"highlight language-{language}")
    return highlight(code, lexer, formatter).rstrip("\n")


class HtmlSerializer(NodeSerializer):
    HANDLERS = {
        NodeType.doc:             "doc",
        NodeType.paragraph:       "paragraph",
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
        NodeType.table_header:    "table_header",
        NodeType.task_list:       "task_list",
        NodeType.task_item:       "task_item",
        NodeType.wiki_link:       "wiki_link",
        NodeType.tag:             "tag",
        NodeType.callout:         "callout",
    }

    def __init__(self, warnings: list[str] | None = None, syntax_highlight: bool = False):
        super().__init__(warnings)
        self.syntax_highlight = syntax_highlight

    def doc(self, node: Node) -> str:
        return self.render_children(node)

    def paragraph(self, node: Node) -> str:
        return _element("p", self.render_children(node))

    def heading(self, node: Node) -> str:
        level = min(max(int(attrs(node).get("level") or 1), 1), 6)
        return _element(f"h{level}", self.render_children(node))

    def text(self, node: Node) -> str:
        """Escaped text; the first mark in the array becomes the outermost element."""
        html = escape(node.get("text") or "", quote=False)
        for mark in reversed(marks(node)):
            mark_type = mark.get("type") if isinstance(mark, dict) else None
            if not self.check_mark(mark_type):
                continue
            if mark_type == "link":
                href = escape((mark.get("attrs") or {}).get("href") or "", quote=True)
                html = f'<a {LINK_ATTRS} href="{href}">{html}</a>'
            else:
                html = f"<{MARK_TAGS[mark_type]}>{html}</{MARK_TAGS[mark_type]}>"
        return html

    def bullet_list(self, node: Node) -> str:
        return _element("ul", self.render_children(node))

    def ordered_list(self, node: Node) -> str:
        start = attrs(node).get("start")
        return _element("ol", self.render_children(node), start=start if start not in (None, 1) else None)

    def list_item(self, node: Node) -> str:
        return _element("li", self.render_children(node))

    def task_list(self, node: Node) -> str:
        return _element("ul", self.render_children(node), **{"data-type": "taskList"})

    def task_item(self, node: Node) -> str:
        checked = bool(attrs(node).get("checked"))
        box = '<input type="checkbox" checked="checked">' if checked else '<input type="checkbox">'
        inner = f"<label>{box}<span></span></label><div>{self.render_children(node)}</div>"
        return _element("li", inner, **{"data-checked": str(checked).lower(), "data-type": "taskItem"})

    def code_block(self, node: Node) -> str:
        language = attrs(node).get("language")
        source = "".join(c.get("text") or "" for c in children(node) if isinstance(c, dict))
        if self.syntax_highlight:
            highlighted = highlight_code(source, language)
            if highlighted is not None:
                return highlighted
        code = escape(source, quote=False)
        return f"<pre>{_element('code', code, **{'class': f'language-{language}' if language else None})}</pre>"

    def blockquote(self, node: Node) -> str:
        return _element("blockquote", self.render_children(node))

    def horizontal_rule(self, node: Node) -> str:
        return "<hr>"

    def hard_break(self, node: Node) -> str:
        return "<br>"

    def table(self, node: Node) -> str:
        return f"<table><tbody>{self.render_children(node)}</tbody></table>"

    def table_row(self, node: Node) -> str:
        return _element("tr", self.render_children(node))

    def _cell(self, tag: str, node: Node) -> str:
        a = attrs(node)
        colspan = a.get("colspan") or 1
        rowspan = a.get("rowspan") or 1
        return _element(tag, self.render_children(node), colspan=colspan, rowspan=rowspan)

    def table_cell(self, node: Node) -> str:
        return self._cell("td", node)

    def table_header(self, node: Node) -> str:
        return self._cell("th", node)

    def wiki_link(self, node: Node) -> str:
        a = attrs(node)
        display = a.get("displayText") or a.get("targetTitle") or "Unknown"
        return _element("span", escape(display, quote=False), **{
            "data-target-title": a.get("targetTitle"),
            "data-display-text": a.get("displayText"),
            "data-content-id":   a.get("contentId"),
            "data-type":         "wiki-link",
            "class":             "wiki-link",
        })

    def tag(self, node: Node) -> str:
        a = attrs(node)
        color = a.get("color") or DEFAULT_TAG_COLOR
        style = (
            "display: inline-flex; align-items: center; padding: 0.125rem 0.5rem; "
            "border-radius: 9999px; font-size: 0.875rem; font-weight: 500; "
            f"background-color: {color}20; color: {color}; border: 1px solid {color}40;"
        )
        return _element("span", escape(f"#{a.get('tagName') or ''}", quote=False), **{
            "data-type":     "tag",
            "class":         "tag-node",
            "style":         style,
            "data-tag-id":   a.get("tagId"),
            "data-tag-name": a.get("tagName"),
            "data-color":    a.get("color"),
        })

    def callout(self, node: Node) -> str:
        a = attrs(node)
        callout_type = a.get("type") or "note"
        title = a.get("title") or callout_type.capitalize()
        header = _element("div", escape(title, quote=False), **{"class": "callout-title", "data-title": title})
        body = _element("div", self.render_children(node), **{"class": "callout-content"})
        return _element("div", header + body, **{
            "data-callout-type":  callout_type,
            "data-callout-title": a.get("title"),
            "class":              f"callout callout-{callout_type}",
        })


class TreeHtmlRenderer(NodeRenderer):
    """Default renderer: editor-equivalent markup for every supported node kind.

    With syntax_highlight, code blocks in a language pygments knows are tokenized
    into a .highlight div; other code blocks stay plain.
    """

    def __init__(self, syntax_highlight: bool = False):
        self.syntax_highlight = syntax_highlight

    def render(self, tree: Node, warnings: list[str]) -> str:
        return HtmlSerializer(warnings, syntax_highlight=self.syntax_highlight).render(tree)
