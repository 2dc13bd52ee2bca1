"""Converter contract and the exhaustive node-kind dispatch shared by tree serializers"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from gardenexport.core.models import ConversionMeta, ConversionOptions, ConversionResult, ConvertedFile, ExportFormat
from gardenexport.core.nodes import MARK_TYPES, Node, NodeType, children, node_kind


logger = logging.getLogger(__name__)


class NodeSerializer:
    """Type-keyed tree serializer.

    Subclasses declare HANDLERS, mapping every NodeType to the name of a method
    taking (node, **ctx). A subclass that leaves a kind out fails at class
    creation. Node types outside the enum render as their children and are
    reported once each in ``warnings``.
    """
    HANDLERS: ClassVar[dict[NodeType, str]] = {}
    CHILD_SEPARATOR: ClassVar[str] = ""

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "HANDLERS" not in cls.__dict__:
            return
        missing = [kind.value for kind in NodeType if kind not in cls.HANDLERS]
        if missing:
            raise TypeError(f"{cls.__name__} has no handler for node type(s): {', '.join(missing)}")
        unbound = [name for name in cls.HANDLERS.values() if not callable(getattr(cls, name, None))]
        if unbound:
            raise TypeError(f"{cls.__name__} names undefined handler(s): {', '.join(unbound)}")

    def __init__(self, warnings: list[str] | None = None):
        self.warnings = warnings if warnings is not None else []
        self._reported: set[str] = set()

    def render(self, node: Any, **ctx) -> str:
        if not isinstance(node, dict):
            return ""
        kind = node_kind(node)
        if kind is None:
            self.unrecognized_node(node.get("type"))
            return self.render_children(node, **ctx)
        return getattr(self, self.HANDLERS[kind])(node, **ctx)

    def render_children(self, node: Node, separator: str | None = None, **ctx) -> str:
        sep = self.CHILD_SEPARATOR if separator is None else separator
        return sep.join(self.render(child, **ctx) for child in children(node))

    def unrecognized_node(self, node_type: Any) -> None:
        self._warn_once(f"node:{node_type}", f"UNRECOGNIZED_NODE: '{node_type}' rendered as its children")

    def unrecognized_mark(self, mark_type: Any) -> None:
        self._warn_once(f"mark:{mark_type}", f"UNRECOGNIZED_MARK: '{mark_type}' ignored")

    def check_mark(self, mark_type: Any) -> bool:
        if mark_type in MARK_TYPES:
            return True
        self.unrecognized_mark(mark_type)
        return False

    def _warn_once(self, key: str, message: str) -> None:
        if key not in self._reported:
            self._reported.add(key)
            self.warnings.append(message)


class DocumentConverter(ABC):
    """One target encoding. convert() never raises: failures become success=False results."""
    format: ClassVar[ExportFormat]
    implemented: ClassVar[bool] = True

    def convert(self, tree: Node, options: ConversionOptions) -> ConversionResult:
        start = time.perf_counter()
        warnings: list[str] = []
        try:
            files = self._convert(tree, options, warnings)
        except Exception as e:
            logger.error("Conversion to %s failed: %s", self.format.value, e, exc_info=True)
            return self.failure(f"{type(e).__name__}: {e}", elapsed=_ms(start))

        return ConversionResult(
            success=self.implemented,
            files=files,
            metadata=ConversionMeta(conversion_time=_ms(start), format=self.format, warnings=warnings),
        )

    @abstractmethod
    def _convert(self, tree: Node, options: ConversionOptions, warnings: list[str]) -> list[ConvertedFile]:
        """Produce output files, appending any non-fatal issues to warnings."""
        raise NotImplementedError

    def failure(self, message: str, elapsed: float = 0.0) -> ConversionResult:
        return ConversionResult(
            success=False,
            files=[],
            metadata=ConversionMeta(conversion_time=elapsed, format=self.format, warnings=[message]),
        )


def _ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
