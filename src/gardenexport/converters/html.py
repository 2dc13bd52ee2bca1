"""HTML converter: renderer fragment, optionally wrapped in a themed standalone document"""

from jinja2 import Environment
from pygments.formatters import HtmlFormatter

from gardenexport.config import HTMLExportSettings
from gardenexport.converters.base import DocumentConverter
from gardenexport.converters.renderer import NodeRenderer, TreeHtmlRenderer
from gardenexport.core.models import ConversionOptions, ConvertedFile, ExportFormat, MetadataSidecar
from gardenexport.core.nodes import Node


THEMES = {
    "light": {
        "bg_primary":     "#ffffff",
        "bg_secondary":   "#f5f5f5",
        "text_primary":   "#1a1a1a",
        "text_secondary": "#666666",
        "border_color":   "#dddddd",
        "code_bg":        "#f5f5f5",
    },
    "dark": {
        "bg_primary":     "#1a1a1a",
        "bg_secondary":   "#2a2a2a",
        "text_primary":   "#e0e0e0",
        "text_secondary": "#aaaaaa",
        "border_color":   "#333333",
        "code_bg":        "#2a2a2a",
    },
}

# pygments style per page theme
SYNTAX_STYLES = {"light": "default", "dark": "monokai"}

CALLOUT_COLORS = {
    "note":    ("#3b82f6", "59, 130, 246"),
    "tip":     ("#10b981", "16, 185, 129"),
    "warning": ("#f59e0b", "245, 158, 11"),
    "danger":  ("#ef4444", "239, 68, 68"),
    "info":    ("#06b6d4", "6, 182, 212"),
}

_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

STYLESHEET = _env.from_string("""<style>
  :root {
    --bg-primary: {{ colors.bg_primary }};
    --bg-secondary: {{ colors.bg_secondary }};
    --text-primary: {{ colors.text_primary }};
    --text-secondary: {{ colors.text_secondary }};
    --border-color: {{ colors.border_color }};
    --link-color: #3b82f6;
    --code-bg: {{ colors.code_bg }};
  }
  * { box-sizing: border-box; }
  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
    line-height: 1.6;
    max-width: 800px;
    margin: 0 auto;
    padding: 2rem;
    background: var(--bg-primary);
    color: var(--text-primary);
  }
  .content-wrapper { background: var(--bg-primary); }
  h1, h2, h3, h4, h5, h6 { margin-top: 1.5em; margin-bottom: 0.5em; font-weight: 600; line-height: 1.3; }
  h1 { font-size: 2em; }
  h2 { font-size: 1.5em; }
  h3 { font-size: 1.25em; }
  h4 { font-size: 1.1em; }
  h5 { font-size: 1em; }
  h6 { font-size: 0.9em; }
  p { margin: 1em 0; }
  code {
    background: var(--code-bg);
    padding: 0.2em 0.4em;
    border-radius: 3px;
    font-family: 'Courier New', 'Monaco', monospace;
    font-size: 0.9em;
  }
  pre { background: var(--code-bg); padding: 1em; border-radius: 5px; overflow-x: auto; margin: 1em 0; }
  pre code { background: none; padding: 0; }
  .highlight { border-radius: 5px; margin: 1em 0; }
  a { color: var(--link-color); text-decoration: underline; }
  a:hover { text-decoration: none; }
  blockquote {
    border-left: 4px solid var(--border-color);
    margin-left: 0;
    padding-left: 1em;
    color: var(--text-secondary);
    font-style: italic;
  }
  ul, ol { padding-left: 2em; margin: 1em 0; }
  li { margin: 0.5em 0; }
  ul[data-type="taskList"] { list-style: none; padding-left: 0; }
  li[data-type="taskItem"] { display: flex; align-items: flex-start; gap: 0.5em; }
  table { border-collapse: collapse; width: 100%; margin: 1em 0; }
  th, td { border: 1px solid var(--border-color); padding: 0.5em; text-align: left; }
  th { background: var(--bg-secondary); font-weight: 600; }
  hr { border: none; border-top: 2px solid var(--border-color); margin: 2em 0; }
  .wiki-link { color: var(--link-color); text-decoration: underline; cursor: pointer; }
  .tag-node {
    display: inline-flex;
    align-items: center;
    padding: 0.125rem 0.5rem;
    border-radius: 9999px;
    font-size: 0.875rem;
    font-weight: 500;
    margin: 0 0.25rem;
  }
  .callout { padding: 1em; border-left: 4px solid; margin: 1em 0; border-radius: 4px; background: rgba(128, 128, 128, 0.1); }
  .callout-title { font-weight: 600; margin-bottom: 0.5em; display: flex; align-items: center; gap: 0.5em; }
{% for name, (border, rgb) in callouts.items() %}
  .callout-{{ name }} { border-color: {{ border }}; background: rgba({{ rgb }}, 0.1); }
{% endfor %}
{% if syntax_css %}
{{ syntax_css|safe }}
{% endif %}
</style>""")

DOCUMENT = _env.from_string("""<!DOCTYPE html>
<html lang="en" data-theme="{{ theme }}">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  {{ css|safe }}
</head>
<body>
  <div class="content-wrapper">
    {{ content|safe }}
  </div>
</body>
</html>""")


def resolve_theme(theme: str) -> str:
    """Static output cannot follow the reader's preference, so 'auto' means light."""
    return "light" if theme == "auto" else theme


def syntax_css(theme: str) -> str:
    return HtmlFormatter(style=SYNTAX_STYLES[theme]).get_style_defs(".highlight")


def stylesheet(theme: str, syntax_highlight: bool) -> str:
    return STYLESHEET.render(
        colors=THEMES[theme],
        callouts=CALLOUT_COLORS,
        syntax_css=syntax_css(theme) if syntax_highlight else "",
    )


def wrap_document(content: str, settings: HTMLExportSettings, metadata: MetadataSidecar | None = None) -> str:
    theme = resolve_theme(settings.theme)
    title = metadata.title if metadata is not None and metadata.title else "Document"
    return DOCUMENT.render(
        theme=theme,
        title=title,
        css=stylesheet(theme, settings.syntax_highlight) if settings.include_css else "",
        content=content,
    )


class HtmlConverter(DocumentConverter):
    format = ExportFormat.html

    def __init__(self, renderer: NodeRenderer | None = None):
        self.renderer = renderer

    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        settings = options.settings.html
        renderer = self.renderer or TreeHtmlRenderer(syntax_highlight=settings.syntax_highlight)
        html = renderer.render(tree, warnings)
        if settings.standalone:
            html = wrap_document(html, settings, options.metadata)
        return [ConvertedFile.from_text("document.html", html, "text/html")]
