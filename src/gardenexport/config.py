"""Application configuration: settings schema, export defaults, and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "GARDENEXPORT_"

ExportFormatName = Literal["markdown", "html", "pdf", "docx", "json", "txt"]


class MarkdownExportSettings(BaseModel):
    include_metadata:           bool = Field(default=True,  description="Emit a .meta.json sidecar next to the .md file")
    include_frontmatter:        bool = Field(default=True,  description="Prepend a YAML front matter block")
    preserve_semantics:         bool = Field(default=True,  description="Wrap wiki-links and tags in HTML comments carrying ids")
    wiki_link_style:            Literal["[[]]", "[]()"] = "[[]]"
    code_block_language_prefix: bool = Field(default=True,  description="Tag fenced code blocks with their language")
    canonicalize_marks:         bool = Field(default=False, description="Sort marks into a fixed nesting order before rendering")


class HTMLExportSettings(BaseModel):
    standalone:       bool = Field(default=True, description="Full HTML document instead of a fragment")
    include_css:      bool = True
    theme:            Literal["light", "dark", "auto"] = "auto"
    syntax_highlight: bool = True


class PageMargins(BaseModel):
    top:    int = 72
    right:  int = 72
    bottom: int = 72
    left:   int = 72


class PDFExportSettings(BaseModel):
    page_size:                Literal["A4", "Letter", "Legal"] = "A4"
    margins:                  PageMargins = Field(default_factory=PageMargins)
    header_footer:            bool = True
    include_table_of_contents: bool = True
    color_scheme:             Literal["color", "grayscale"] = "color"


class AutoBackupSettings(BaseModel):
    enabled:          bool = False
    frequency:        Literal["daily", "weekly", "monthly", "manual"] = "weekly"
    formats:          list[ExportFormatName] = Field(default_factory=lambda: ["markdown", "json"])
    storage_provider: Literal["r2", "s3", "vercel", "local"] = "r2"
    include_deleted:  bool = False
    max_backups:      int = Field(default=30, ge=0)
    last_backup_at:   str | None = None


class BulkExportSettings(BaseModel):
    batch_size:         int = Field(default=50, ge=1, description="Documents converted concurrently per batch")
    compression_format: Literal["zip", "tar.gz", "none"] = Field(
        default="zip", description="Always a zip archive; any value other than 'zip' stores entries uncompressed",
    )
    include_structure:  bool = Field(default=True, description="Mirror the folder hierarchy inside the archive")
    file_naming:        Literal["slug", "title", "id"] = "slug"


class ExportBackupSettings(BaseModel):
    """Per-user export preferences passed to converters and the bulk exporter."""
    default_format: ExportFormatName = "markdown"
    markdown:       MarkdownExportSettings = Field(default_factory=MarkdownExportSettings)
    html:           HTMLExportSettings = Field(default_factory=HTMLExportSettings)
    pdf:            PDFExportSettings = Field(default_factory=PDFExportSettings)
    auto_backup:    AutoBackupSettings = Field(default_factory=AutoBackupSettings)
    bulk_export:    BulkExportSettings = Field(default_factory=BulkExportSettings)


class Settings(BaseModel):
    app_name:   str = "gardenexport"
    db_url:     str = "sqlite:///gardenexport.db"
    output_dir: str = Field(default="dist", description="Directory for converted files and archives")
    log_level:  str = Field(default="INFO", description="Console log level")
    log_file:   str | None = Field(default=None, description="Optional JSON-lines log file")
    max_errors: int = Field(default=1000, ge=1, description="Error monitor ring buffer capacity")
    export:     ExportBackupSettings = Field(default_factory=ExportBackupSettings)


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then GARDENEXPORT_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if name == "export":
            continue
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
