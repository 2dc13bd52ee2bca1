"""Lossless converter: the tree re-serialized exactly as given"""

import json

from gardenexport.converters.base import DocumentConverter
from gardenexport.core.models import ConversionOptions, ConvertedFile, ExportFormat
from gardenexport.core.nodes import Node


class JsonConverter(DocumentConverter):
    format = ExportFormat.json

    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        # dict order is insertion order, so keys come back exactly as the producer wrote them
        content = json.dumps(tree, indent=2, ensure_ascii=False)
        return [ConvertedFile.from_text("document.json", content, "application/json")]
