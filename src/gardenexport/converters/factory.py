"""Format registry: ExportFormat -> converter class, resolved at import"""

import logging

from gardenexport.converters.base import DocumentConverter
from gardenexport.converters.html import HtmlConverter
from gardenexport.converters.json_converter import JsonConverter
from gardenexport.converters.markdown import MarkdownConverter
from gardenexport.converters.plaintext import PlainTextConverter
from gardenexport.converters.stubs import DocxConverter, PdfConverter
from gardenexport.core.errors import UnsupportedFormatError
from gardenexport.core.models import ConversionMeta, ConversionOptions, ConversionResult, ExportFormat
from gardenexport.core.nodes import Node


logger = logging.getLogger(__name__)

CONVERTERS: dict[ExportFormat, type[DocumentConverter]] = {
    ExportFormat.markdown: MarkdownConverter,
    ExportFormat.html:     HtmlConverter,
    ExportFormat.json:     JsonConverter,
    ExportFormat.txt:      PlainTextConverter,
    ExportFormat.pdf:      PdfConverter,
    ExportFormat.docx:     DocxConverter,
}

_missing = set(ExportFormat) - set(CONVERTERS)
if _missing:
    raise TypeError(f"No converter registered for: {', '.join(sorted(f.value for f in _missing))}")


def parse_format(name: ExportFormat | str) -> ExportFormat:
    try:
        return ExportFormat(name)
    except ValueError:
        raise UnsupportedFormatError(f"Unsupported export format: {name}") from None


def get_converter(format: ExportFormat | str) -> DocumentConverter:
    """Instantiate the converter for format. Raises UnsupportedFormatError for unknown names."""
    return CONVERTERS[parse_format(format)]()


def convert_document(tree: Node, options: ConversionOptions) -> ConversionResult:
    """Convert tree per options. Never raises; any failure becomes a success=False result."""
    try:
        return get_converter(options.format).convert(tree, options)
    except Exception as e:
        logger.error("Conversion failed for format %s: %s", options.format, e, exc_info=True)
        return ConversionResult(
            success=False,
            files=[],
            metadata=ConversionMeta(conversion_time=0.0, format=options.format, warnings=[str(e) or "Unknown conversion error"]),
        )
