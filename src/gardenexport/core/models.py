"""Data contracts shared by validation, conversion, metadata, and monitoring"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gardenexport.config import ExportBackupSettings


class ExportFormat(str, Enum):
    """Closed set of target encodings"""
    markdown = "markdown"
    html = "html"
    pdf = "pdf"
    docx = "docx"
    json = "json"
    txt = "txt"


class Severity(str, Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"


class CamelModel(BaseModel):
    """Model whose JSON wire form uses camelCase keys while Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- schema ---

class SchemaSnapshot(BaseModel):
    """Node/mark catalog: either the supported registry or what one document actually uses."""
    nodes:      list[str] = []
    marks:      list[str] = []
    extensions: list[str] = []
    version:    Optional[str] = None


# --- metadata sidecar ---

class SidecarTag(BaseModel):
    """A record-level tag association (distinct from in-document tag annotations)."""
    id:    str
    name:  str
    slug:  str = ""
    color: Optional[str] = None


class WikiLinkRef(CamelModel):
    target_title: Optional[str] = None
    display_text: Optional[str] = None
    content_id:   Optional[str] = None


class CalloutRef(CamelModel):
    type:     str = "note"
    title:    Optional[str] = None
    position: int


class TagRef(CamelModel):
    tag_id:   Optional[str] = None
    tag_name: Optional[str] = None
    color:    Optional[str] = None


class MetadataSidecar(CamelModel):
    """Semantic information exported next to a converted document."""
    version:        str = "1.0"
    schema_version: str
    content_id:     str
    title:          str
    slug:           str = ""
    created_at:     str = ""
    updated_at:     str = ""
    tags:           list[SidecarTag] = []
    wiki_links:     list[WikiLinkRef] = []
    callouts:       list[CalloutRef] = []
    schema_:        Optional[SchemaSnapshot] = Field(default=None, alias="schema")
    custom:         dict[str, Any] = {}


# --- records ---

class DocumentRecord(BaseModel):
    """Public contract for a document fetched from the record supplier."""
    id:          str
    owner_id:    str
    title:       str
    slug:        str
    parent_id:   Optional[str] = None
    created_at:  datetime
    updated_at:  datetime
    deleted_at:  Optional[datetime] = None
    tree:        Optional[dict[str, Any]] = None   # None for non-note content (files, folders)
    custom:      dict[str, Any] = {}
    tags:        list[SidecarTag] = []


class DateRange(BaseModel):
    start: datetime
    end:   datetime


class BulkExportFilters(BaseModel):
    """Record selection for a vault export. Unset fields do not filter."""
    parent_id:       Optional[str] = None
    tags:            Optional[list[str]] = None     # tag slugs; a record matches if it has any
    date_range:      Optional[DateRange] = None     # inclusive, on created_at
    include_deleted: bool = False


class BulkExportOptions(BaseModel):
    user_id:  str
    format:   ExportFormat = ExportFormat.markdown
    filters:  BulkExportFilters = Field(default_factory=BulkExportFilters)
    settings: ExportBackupSettings = Field(default_factory=ExportBackupSettings)


# --- validation ---

class ValidationError(BaseModel):
    code:     str
    message:  str
    severity: Severity
    context:  Optional[dict[str, Any]] = None


class ValidationWarning(BaseModel):
    code:       str
    message:    str
    suggestion: Optional[str] = None


class ValidationMeta(BaseModel):
    checked_at:     str
    schema_version: str


class ValidationResult(BaseModel):
    valid:    bool
    errors:   list[ValidationError] = []
    warnings: list[ValidationWarning] = []
    metadata: Optional[ValidationMeta] = None


# --- conversion ---

class ConvertedFile(BaseModel):
    name:      str
    content:   str | bytes
    mime_type: str
    size:      int

    @classmethod
    def from_text(cls, name: str, content: str, mime_type: str) -> "ConvertedFile":
        return cls(name=name, content=content, mime_type=mime_type, size=len(content.encode("utf-8")))


class ConversionMeta(BaseModel):
    conversion_time: float = 0.0
    format:          ExportFormat
    warnings:        list[str] = []


class ConversionResult(BaseModel):
    success:  bool
    files:    list[ConvertedFile] = []
    metadata: Optional[ConversionMeta] = None

    @property
    def warnings(self) -> list[str]:
        return self.metadata.warnings if self.metadata else []


class ConversionOptions(BaseModel):
    """Arguments for a single convert() call."""
    format:   ExportFormat
    settings: ExportBackupSettings = Field(default_factory=ExportBackupSettings)
    metadata: Optional[MetadataSidecar] = None


# --- monitoring ---

class ErrorType(str, Enum):
    conversion = "conversion"
    validation = "validation"
    unknown_node = "unknown_node"
    system = "system"


class DiscrepancyType(str, Enum):
    schema_mismatch = "schema_mismatch"
    unknown_node = "unknown_node"
    missing_attribute = "missing_attribute"
    invalid_structure = "invalid_structure"


class ExportErrorLog(BaseModel):
    """Append-only record of one error event."""
    id:             str
    timestamp:      datetime
    content_id:     str
    format:         str
    schema_version: str
    error_type:     ErrorType
    error_code:     str
    error_message:  str
    stack_trace:    Optional[str] = None
    context:        dict[str, Any] = {}
    user_id:        str


class DiscrepancyDetails(BaseModel):
    expected:   Any = None
    actual:     Any = None
    location:   Optional[str] = None
    suggestion: Optional[str] = None


class DiscrepancyReport(BaseModel):
    """Aggregate of one (error code, schema version) pair."""
    code:           str
    type:           DiscrepancyType
    severity:       Severity
    detected_at:    datetime
    schema_version: str
    details:        DiscrepancyDetails = Field(default_factory=DiscrepancyDetails)
    occurrences:    int = 1
    first_seen:     datetime
    last_seen:      datetime


class MonitorStatistics(BaseModel):
    total_errors:      int
    errors_by_type:    dict[str, int]
    errors_by_code:    dict[str, int]
    recent_errors:     list[ExportErrorLog]
    top_discrepancies: list[DiscrepancyReport]


class HealthReport(BaseModel):
    healthy: bool
    issues:  list[str]
    stats:   MonitorStatistics
