"""Structural and schema-compliance validation for trees, sidecars, and export results

Validation never blocks an export on its own: every issue becomes a typed error or
warning, and callers decide what to do with the result.
"""

import json
from datetime import datetime, timezone
from typing import Any

from gardenexport.core.models import (
    ConversionResult, MetadataSidecar, Severity, ValidationError, ValidationMeta,
    ValidationResult, ValidationWarning,
)
from gardenexport.core.nodes import MARK_TYPES, NODE_TYPES, Node, attrs, children, marks, walk
from gardenexport.core.schema import get_current_schema_version, required_attributes


LARGE_DOCUMENT_KB = 10_000
REQUIRED_METADATA_FIELDS = ("version", "schemaVersion", "contentId", "title")


def _meta() -> ValidationMeta:
    return ValidationMeta(
        checked_at=datetime.now(timezone.utc).isoformat(),
        schema_version=get_current_schema_version(),
    )


def _error(code: str, message: str, severity: Severity, **context: Any) -> ValidationError:
    return ValidationError(code=code, message=message, severity=severity, context=context or None)


def validate_tree(tree: Any) -> ValidationResult:
    """Check a document tree before export.

    Unknown node and mark types are warnings (forward-compatible degrade); a missing
    required attribute is a high-severity error; an unserializable tree is critical.
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []

    if not isinstance(tree, dict):
        errors.append(_error(
            "INVALID_STRUCTURE", "Document tree is not a valid object",
            Severity.critical, received=type(tree).__name__,
        ))
        return ValidationResult(valid=False, errors=errors, warnings=warnings, metadata=_meta())

    if tree.get("type") != "doc":
        errors.append(_error(
            "INVALID_ROOT", "Root node must be type 'doc'",
            Severity.critical, received=tree.get("type"),
        ))
        return ValidationResult(valid=False, errors=errors, warnings=warnings, metadata=_meta())

    active: set[int] = set()
    stack: list[tuple[Any, str, bool]] = [(tree, "root", False)]
    while stack:
        node, path, leaving = stack.pop()
        if leaving:
            active.discard(id(node))
            continue
        if not isinstance(node, dict) or id(node) in active:
            continue
        active.add(id(node))
        node_type = node.get("type")

        if node_type and node_type not in NODE_TYPES:
            warnings.append(ValidationWarning(
                code="UNKNOWN_NODE_TYPE",
                message=f"Unknown node type '{node_type}' at {path}",
                suggestion=f"Add '{node_type}' to schema or update converters to handle it",
            ))

        for idx, mark in enumerate(marks(node)):
            mark_type = mark.get("type") if isinstance(mark, dict) else None
            if mark_type not in MARK_TYPES:
                warnings.append(ValidationWarning(
                    code="UNKNOWN_MARK_TYPE",
                    message=f"Unknown mark type '{mark_type}' at {path}/marks[{idx}]",
                    suggestion=f"Add '{mark_type}' to schema or update converters",
                ))

        node_attrs = attrs(node)
        for required in required_attributes(node_type):
            if required not in node_attrs:
                errors.append(_error(
                    "MISSING_REQUIRED_ATTRIBUTE",
                    f"Node '{node_type}' missing required attribute '{required}' at {path}",
                    Severity.high, nodeType=node_type, missingAttr=required, path=path,
                ))

        stack.append((node, path, True))
        stack.extend(
            (child, f"{path}/content[{idx}]", False)
            for idx, child in reversed(list(enumerate(children(node))))
        )

    try:
        serialized = json.dumps(tree)
    except RecursionError:
        errors.append(_error(
            "NESTING_TOO_DEEP", "Document tree is nested too deeply to serialize",
            Severity.high,
        ))
    except (TypeError, ValueError) as e:
        errors.append(_error(
            "CIRCULAR_REFERENCE", "Document tree contains circular references",
            Severity.critical, error=str(e),
        ))
    else:
        size_kb = len(serialized.encode("utf-8")) / 1024
        if size_kb > LARGE_DOCUMENT_KB:
            warnings.append(ValidationWarning(
                code="LARGE_DOCUMENT",
                message=f"Document is very large ({size_kb:.2f}KB)",
                suggestion="Consider splitting into smaller documents",
            ))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, metadata=_meta())


def _wire(metadata: MetadataSidecar | dict) -> dict[str, Any]:
    return metadata.to_wire() if isinstance(metadata, MetadataSidecar) else dict(metadata)


def validate_metadata(metadata: MetadataSidecar | dict, tree: Node) -> ValidationResult:
    """Check a sidecar against its tree: required fields, version drift, and snapshot staleness."""
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []
    data = _wire(metadata)

    for name in REQUIRED_METADATA_FIELDS:
        if data.get(name) is None:
            errors.append(_error(
                "MISSING_METADATA_FIELD", f"Required field '{name}' missing from metadata",
                Severity.high, field=name,
            ))

    current = get_current_schema_version()
    if data.get("schemaVersion") != current:
        warnings.append(ValidationWarning(
            code="SCHEMA_VERSION_MISMATCH",
            message=f"Metadata schema version ({data.get('schemaVersion')}) differs from current ({current})",
            suggestion="Migration may be needed on import",
        ))

    declared = data.get("schema")
    if isinstance(declared, dict) and isinstance(tree, dict):
        actual_nodes: dict[str, None] = {}
        actual_marks: dict[str, None] = {}
        for node in walk(tree):
            if node.get("type"):
                actual_nodes[node["type"]] = None
            for mark in marks(node):
                if isinstance(mark, dict) and mark.get("type"):
                    actual_marks[mark["type"]] = None

        declared_nodes = set(declared.get("nodes") or [])
        declared_marks = set(declared.get("marks") or [])
        for name in actual_nodes:
            if name not in declared_nodes:
                warnings.append(ValidationWarning(
                    code="METADATA_SCHEMA_INCOMPLETE",
                    message=f"Node type '{name}' used in content but not listed in metadata.schema.nodes",
                    suggestion="Metadata snapshot may be outdated",
                ))
        for name in actual_marks:
            if name not in declared_marks:
                warnings.append(ValidationWarning(
                    code="METADATA_SCHEMA_INCOMPLETE",
                    message=f"Mark type '{name}' used in content but not listed in metadata.schema.marks",
                    suggestion="Metadata snapshot may be outdated",
                ))

    for idx, tag in enumerate(data.get("tags") or []):
        if not isinstance(tag, dict) or not tag.get("id") or not tag.get("name"):
            errors.append(_error(
                "INVALID_TAG_REFERENCE", f"Tag at index {idx} missing required fields",
                Severity.medium, tag=tag,
            ))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _as_text(content: str | bytes) -> str:
    return content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content


def validate_export_result(result: ConversionResult) -> ValidationResult:
    """Sanity-check converter output: success flag, files present, and per-format syntax."""
    errors: list[ValidationError] = []
    warnings: list[ValidationWarning] = []

    if not result.success:
        errors.append(_error("EXPORT_FAILED", "Export operation marked as failed", Severity.critical))

    if not result.files:
        errors.append(_error("NO_FILES_GENERATED", "Export produced no files", Severity.critical))
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    for file in result.files:
        if not file.content:
            errors.append(_error(
                "EMPTY_FILE", f"File '{file.name}' has no content",
                Severity.high, fileName=file.name,
            ))
        content = _as_text(file.content)

        if file.name.endswith(".md"):
            if not content.strip():
                errors.append(_error(
                    "EMPTY_MARKDOWN", "Markdown file is empty",
                    Severity.medium, fileName=file.name,
                ))
            if content.count("```") % 2:
                warnings.append(ValidationWarning(
                    code="UNCLOSED_CODE_BLOCK",
                    message="Markdown may have unclosed code blocks",
                    suggestion="Verify code block syntax",
                ))

        if file.name.endswith(".meta.json"):
            try:
                parsed = json.loads(content)
            except json.JSONDecodeError as e:
                errors.append(_error(
                    "INVALID_JSON", f"Metadata file '{file.name}' is not valid JSON",
                    Severity.high, error=str(e),
                ))
            else:
                if not isinstance(parsed, dict) or not parsed.get("schemaVersion"):
                    warnings.append(ValidationWarning(
                        code="MISSING_SCHEMA_VERSION",
                        message="Metadata file missing schemaVersion field",
                        suggestion="Add schemaVersion to track compatibility",
                    ))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_before_export(tree: Any, metadata: MetadataSidecar | dict | None = None) -> ValidationResult:
    """Combined tree + sidecar pre-flight check. Used as a non-blocking gate."""
    results = [validate_tree(tree)]
    if metadata is not None:
        results.append(validate_metadata(metadata, tree))
    return ValidationResult(
        valid=all(r.valid for r in results),
        errors=[e for r in results for e in r.errors],
        warnings=[w for r in results for w in r.warnings],
        metadata=_meta(),
    )


def format_validation_result(result: ValidationResult) -> str:
    """Render a ValidationResult as a multi-line report for logs and the CLI."""
    lines = ["Validation passed" if result.valid else "Validation failed"]

    if result.errors:
        lines += ["", "Errors:"]
        for err in result.errors:
            lines.append(f"  [{err.severity.value.upper()}] {err.code}: {err.message}")
            if err.context:
                lines.append(f"    Context: {json.dumps(err.context, default=str)}")

    if result.warnings:
        lines += ["", "Warnings:"]
        for warn in result.warnings:
            lines.append(f"  [WARN] {warn.code}: {warn.message}")
            if warn.suggestion:
                lines.append(f"    Suggestion: {warn.suggestion}")

    return "\n".join(lines)
