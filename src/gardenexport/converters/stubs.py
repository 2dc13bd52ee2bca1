"""Formats without a real encoder yet. Both report success=False with a warning instead of raising."""

from gardenexport.converters.base import DocumentConverter
from gardenexport.converters.html import HtmlConverter
from gardenexport.core.models import ConversionOptions, ConvertedFile, ExportFormat
from gardenexport.core.nodes import Node


class PdfConverter(DocumentConverter):
    """Falls back to the standalone HTML output."""
    format = ExportFormat.pdf
    implemented = False

    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        html = HtmlConverter().convert(tree, options.model_copy(update={"format": ExportFormat.html}))
        warnings.append("PDF export not yet implemented. Returning HTML instead.")
        warnings.extend(html.warnings)
        return html.files


class DocxConverter(DocumentConverter):
    format = ExportFormat.docx
    implemented = False

    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        warnings.append("DOCX export not yet implemented.")
        return []
