"""Error monitor: bounded error log plus aggregated discrepancy reports

One ErrorMonitor is owned by whoever runs exports and passed to the exporter.
Every public method takes the instance lock, so concurrent batch workers can
append to the same monitor.
"""

import logging
import threading
import traceback
import uuid
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any

from gardenexport.core.models import (
    DiscrepancyDetails, DiscrepancyReport, DiscrepancyType, ErrorType, ExportErrorLog,
    HealthReport, MonitorStatistics, Severity, ValidationError, ValidationResult,
)


logger = logging.getLogger(__name__)

RECURRING_WINDOW = 100
RECURRING_THRESHOLD = 10
TOP_DISCREPANCIES = 10
RECENT_ERRORS = 10

SUGGESTIONS: dict[str, str] = {
    "UNKNOWN_NODE_TYPE":          "Add this node type to the schema registry and implement converter serialization",
    "UNKNOWN_MARK_TYPE":          "Add this mark type to the schema registry and implement converter serialization",
    "MISSING_REQUIRED_ATTRIBUTE": "Ensure the editor extension populates all required attributes",
    "INVALID_STRUCTURE":          "Check the editor extension implementation",
    "SCHEMA_VERSION_MISMATCH":    "Run migration or update schema version",
    "CIRCULAR_REFERENCE":         "Fix the extension to avoid circular references",
    "NESTING_TOO_DEEP":           "Flatten deeply nested lists, quotes, or callouts",
}
DEFAULT_SUGGESTION = "Review error details and schema documentation"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def classify_error(code: str) -> ErrorType:
    if "UNKNOWN_NODE" in code or "UNKNOWN_MARK" in code:
        return ErrorType.unknown_node
    if "INVALID" in code or "MISSING" in code:
        return ErrorType.validation
    if "CONVERSION" in code or "EXPORT" in code:
        return ErrorType.conversion
    return ErrorType.system


def classify_discrepancy(code: str) -> DiscrepancyType:
    if "SCHEMA" in code or "VERSION" in code:
        return DiscrepancyType.schema_mismatch
    if "UNKNOWN_NODE" in code or "UNKNOWN_MARK" in code:
        return DiscrepancyType.unknown_node
    if "MISSING_" in code:
        return DiscrepancyType.missing_attribute
    return DiscrepancyType.invalid_structure


def suggestion_for(code: str) -> str:
    return SUGGESTIONS.get(code, DEFAULT_SUGGESTION)


class ErrorMonitor:
    """Thread-safe store of recent export errors and (code, schema version) discrepancies."""

    def __init__(self, max_errors: int = 1000):
        self.max_errors = max_errors
        self._errors: deque[ExportErrorLog] = deque(maxlen=max_errors)
        self._discrepancies: dict[tuple[str, str], DiscrepancyReport] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    # --- writes ---

    def log_error(
        self,
        content_id: str,
        format: str,
        user_id: str,
        schema_version: str,
        error_type: ErrorType,
        error_code: str,
        error_message: str,
        stack_trace: str | None = None,
        context: dict[str, Any] | None = None,
        ) -> ExportErrorLog:
        """Append one error event and warn if its code has become a recurring issue."""
        entry = ExportErrorLog(
            id=f"err_{uuid.uuid4().hex}",
            timestamp=_now(),
            content_id=content_id,
            format=format,
            schema_version=schema_version,
            error_type=error_type,
            error_code=error_code,
            error_message=error_message,
            stack_trace=stack_trace,
            context=context or {},
            user_id=user_id,
        )
        with self._lock:
            self._errors.append(entry)
            window = list(self._errors)[-RECURRING_WINDOW:]
            similar = sum(1 for e in window if e.error_code == error_code)

        logger.error(
            "Export error %s: %s", error_code, error_message,
            extra={"content_id": content_id, "export_format": format, "error_context": entry.context},
        )
        if similar >= RECURRING_THRESHOLD:
            logger.warning("Recurring issue detected: %s (%d occurrences)", error_code, similar)
        return entry

    def log_exception(
        self,
        exc: BaseException,
        content_id: str,
        format: str,
        user_id: str,
        schema_version: str,
        ) -> ExportErrorLog:
        """Record an operational failure (system tier) with its traceback."""
        return self.log_error(
            content_id=content_id,
            format=format,
            user_id=user_id,
            schema_version=schema_version,
            error_type=ErrorType.system,
            error_code=type(exc).__name__,
            error_message=str(exc),
            stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )

    def log_validation(self, content_id: str, format: str, user_id: str, result: ValidationResult) -> None:
        """Fan validation errors into the error log; aggregate errors and warnings as discrepancies."""
        schema_version = result.metadata.schema_version if result.metadata else "unknown"
        for err in result.errors:
            self.log_error(
                content_id=content_id,
                format=format,
                user_id=user_id,
                schema_version=schema_version,
                error_type=classify_error(err.code),
                error_code=err.code,
                error_message=err.message,
                context=err.context,
            )
            self._track(err, schema_version)
        for warn in result.warnings:
            self._track(
                ValidationError(code=warn.code, message=warn.message, severity=Severity.low),
                schema_version,
            )

    def _track(self, error: ValidationError, schema_version: str) -> None:
        key = (error.code, schema_version)
        now = _now()
        with self._lock:
            existing = self._discrepancies.get(key)
            if existing:
                existing.occurrences += 1
                existing.last_seen = now
                return
            report = DiscrepancyReport(
                code=error.code,
                type=classify_discrepancy(error.code),
                severity=error.severity,
                detected_at=now,
                schema_version=schema_version,
                details=DiscrepancyDetails(
                    location=(error.context or {}).get("path") or "unknown",
                    suggestion=suggestion_for(error.code),
                ),
                first_seen=now,
                last_seen=now,
            )
            self._discrepancies[key] = report

        if report.severity == Severity.critical:
            logger.error("Critical schema discrepancy detected: %s (schema %s)", report.code, schema_version)

    # --- reads ---

    def get_statistics(self) -> MonitorStatistics:
        with self._lock:
            errors = list(self._errors)
            reports = [r.model_copy() for r in self._discrepancies.values()]
        reports.sort(key=lambda r: r.occurrences, reverse=True)
        return MonitorStatistics(
            total_errors=len(errors),
            errors_by_type=dict(Counter(e.error_type.value for e in errors)),
            errors_by_code=dict(Counter(e.error_code for e in errors)),
            recent_errors=errors[-RECENT_ERRORS:],
            top_discrepancies=reports[:TOP_DISCREPANCIES],
        )

    def get_errors(self, content_id: str | None = None) -> list[ExportErrorLog]:
        with self._lock:
            errors = list(self._errors)
        return [e for e in errors if content_id is None or e.content_id == content_id]

    def get_discrepancies(
        self,
        severity: Severity | str | None = None,
        type: DiscrepancyType | str | None = None,
        since: datetime | None = None,
        ) -> list[DiscrepancyReport]:
        """Discrepancy reports matching every given filter, most frequent first."""
        with self._lock:
            reports = [r.model_copy() for r in self._discrepancies.values()]
        if severity:
            reports = [r for r in reports if r.severity == Severity(severity)]
        if type:
            reports = [r for r in reports if r.type == DiscrepancyType(type)]
        if since:
            reports = [r for r in reports if r.first_seen >= since]
        return sorted(reports, key=lambda r: r.occurrences, reverse=True)

    def cleanup(self, older_than: datetime) -> None:
        """Drop errors logged, and discrepancies last seen, before older_than."""
        with self._lock:
            kept = [e for e in self._errors if e.timestamp >= older_than]
            self._errors = deque(kept, maxlen=self.max_errors)
            self._discrepancies = {
                k: r for k, r in self._discrepancies.items() if r.last_seen >= older_than
            }

    def check_health(self) -> HealthReport:
        stats = self.get_statistics()
        issues: list[str] = []

        if stats.total_errors > 100:
            issues.append(f"High error count: {stats.total_errors} errors logged")

        critical = [d for d in stats.top_discrepancies if d.severity == Severity.critical]
        if critical:
            issues.append(f"{len(critical)} critical discrepancies detected")

        unknown = stats.errors_by_type.get(ErrorType.unknown_node.value, 0)
        if unknown > 10:
            issues.append(f"{unknown} unknown node type errors (schema may be outdated)")

        return HealthReport(healthy=not issues, issues=issues, stats=stats)

    def recommendations(self, health: HealthReport | None = None) -> list[str]:
        """Actionable next steps derived from a health report."""
        stats = (health or self.check_health()).stats
        recs: list[str] = []

        if stats.total_errors > 100:
            recs.append("High error count detected. Review error logs and consider updating converters.")

        unknown = stats.errors_by_type.get(ErrorType.unknown_node.value, 0)
        if unknown > 10:
            recs.append(f"{unknown} unknown node type errors. Update the schema registry and add converter support.")

        validation = stats.errors_by_type.get(ErrorType.validation.value, 0)
        if validation > 20:
            recs.append(f"{validation} validation errors. Check editor extensions for required attributes.")

        if stats.top_discrepancies:
            top = stats.top_discrepancies[0]
            if top.occurrences > 50:
                recs.append(
                    f"Recurring issue: {top.type.value} ({top.occurrences} occurrences). "
                    f"{top.details.suggestion or 'Review schema documentation.'}"
                )

        return recs or ["Export system is healthy. No actions needed."]


_default: ErrorMonitor | None = None
_default_lock = threading.Lock()


def default_monitor(max_errors: int = 1000) -> ErrorMonitor:
    """Process-wide monitor for the CLI. max_errors applies only on first use. Library callers should construct their own."""
    global _default
    with _default_lock:
        if _default is None:
            _default = ErrorMonitor(max_errors=max_errors)
        return _default
