"""Export-then-reimport comparison: classifies every difference between two trees

lossless  structurally identical (never reported as a difference)
cosmetic  whitespace, mark order, empty attrs, added marks: no data loss
semantic  missing nodes, changed significant attrs, lost marks: data loss
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel

from gardenexport.core.nodes import Node, marks


SEMANTIC_ATTRS = frozenset({"tagId", "color", "level", "checked"})
EQUIVALENT_LANGUAGES = ("", "plaintext", None)


class DifferenceCategory(str, Enum):
    lossless = "lossless"
    cosmetic = "cosmetic"
    semantic = "semantic"


class NodeDifference(BaseModel):
    path:     str
    category: DifferenceCategory
    original: Any = None
    imported: Any = None
    message:  str


class RoundTripReport(BaseModel):
    identical:      bool
    lossless_count: int
    cosmetic_count: int
    semantic_count: int
    differences:    list[NodeDifference] = []


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _compare_attrs(orig: dict, reim: dict, path: str, out: list[NodeDifference]) -> None:
    if not orig and not reim:
        return
    for key in sorted(set(orig) | set(reim)):
        a, b = orig.get(key), reim.get(key)
        if _dumps(a) == _dumps(b):
            continue
        if key == "language" and a in EQUIVALENT_LANGUAGES and b in EQUIVALENT_LANGUAGES:
            continue
        out.append(NodeDifference(
            path=f"{path}.attrs.{key}",
            category=DifferenceCategory.semantic if key in SEMANTIC_ATTRS else DifferenceCategory.cosmetic,
            original=a,
            imported=b,
            message=f'Attr "{key}" changed: {json.dumps(a, default=str)} -> {json.dumps(b, default=str)}',
        ))


def _compare_marks(orig: list, reim: list, path: str, out: list[NodeDifference]) -> None:
    if not orig and not reim:
        return

    def by_type(ms: list) -> list:
        return sorted(ms, key=lambda m: m.get("type") or "")

    if _dumps(by_type(orig)) == _dumps(by_type(reim)):
        if _dumps(orig) != _dumps(reim):
            out.append(NodeDifference(
                path=f"{path}.marks",
                category=DifferenceCategory.cosmetic,
                original=[m.get("type") for m in orig],
                imported=[m.get("type") for m in reim],
                message="Mark order differs (no data loss)",
            ))
        return

    orig_types = {m.get("type"): m for m in orig}
    reim_types = {m.get("type"): m for m in reim}
    for mark_type, mark in orig_types.items():
        if mark_type not in reim_types:
            out.append(NodeDifference(
                path=f"{path}.marks", category=DifferenceCategory.semantic,
                original=mark_type, imported=None,
                message=f'Mark "{mark_type}" lost during round-trip',
            ))
        elif _dumps(mark.get("attrs") or {}) != _dumps(reim_types[mark_type].get("attrs") or {}):
            out.append(NodeDifference(
                path=f"{path}.marks", category=DifferenceCategory.semantic,
                original=mark.get("attrs"), imported=reim_types[mark_type].get("attrs"),
                message=f'Mark "{mark_type}" attrs changed during round-trip',
            ))
    for mark_type in reim_types:
        if mark_type not in orig_types:
            out.append(NodeDifference(
                path=f"{path}.marks", category=DifferenceCategory.cosmetic,
                original=None, imported=mark_type,
                message=f'Extra mark "{mark_type}" added during round-trip',
            ))


def _compare(orig: Node, reim: Node, path: str, out: list[NodeDifference]) -> None:
    if orig.get("type") != reim.get("type"):
        out.append(NodeDifference(
            path=f"{path}.type", category=DifferenceCategory.semantic,
            original=orig.get("type"), imported=reim.get("type"),
            message=f'Node type mismatch: "{orig.get("type")}" vs "{reim.get("type")}"',
        ))
        return

    if orig.get("type") == "text":
        a, b = orig.get("text") or "", reim.get("text") or ""
        if a != b:
            whitespace_only = a.strip() == b.strip()
            out.append(NodeDifference(
                path=f"{path}.text",
                category=DifferenceCategory.cosmetic if whitespace_only else DifferenceCategory.semantic,
                original=a,
                imported=b,
                message="Whitespace difference in text" if whitespace_only
                else f'Text content changed: "{a[:50]}" vs "{b[:50]}"',
            ))
        _compare_marks(marks(orig), marks(reim), path, out)
        return

    _compare_attrs(orig.get("attrs") or {}, reim.get("attrs") or {}, path, out)

    a_children, b_children = orig.get("content") or [], reim.get("content") or []
    if len(a_children) != len(b_children):
        out.append(NodeDifference(
            path=f"{path}.content.length", category=DifferenceCategory.semantic,
            original=len(a_children), imported=len(b_children),
            message=f"Child count mismatch: {len(a_children)} vs {len(b_children)}",
        ))
    for i, (a, b) in enumerate(zip(a_children, b_children)):
        _compare(a, b, f"{path}.content[{i}]", out)


def verify_round_trip(original: Node, reimported: Node) -> RoundTripReport:
    """Compare an original tree with its export-then-reimport counterpart."""
    differences: list[NodeDifference] = []
    _compare(original, reimported, "doc", differences)

    def count(category: DifferenceCategory) -> int:
        return sum(1 for d in differences if d.category == category)

    return RoundTripReport(
        identical=not differences,
        lossless_count=count(DifferenceCategory.lossless),
        cosmetic_count=count(DifferenceCategory.cosmetic),
        semantic_count=count(DifferenceCategory.semantic),
        differences=differences,
    )
