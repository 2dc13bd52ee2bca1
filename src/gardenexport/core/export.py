"""Export pipeline: batched vault export into a zip archive, and single-document export

Per document: validate (non-blocking), build the sidecar, convert, then place the
files in the archive under the document's folder path. A failure in one document
is logged to the ErrorMonitor and skipped. The single-document path raises instead.
"""

import io
import logging
import re
import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone

from gardenexport.config import ExportBackupSettings
from gardenexport.converters.factory import convert_document, parse_format
from gardenexport.core.errors import DocumentNotFoundError, ExportError, ExportFailedError, NotANoteError
from gardenexport.core.metadata import generate_metadata_sidecar
from gardenexport.core.models import (
    BulkExportFilters, BulkExportOptions, ConversionOptions, ConversionResult, ConvertedFile,
    DocumentRecord, ErrorType, ExportFormat,
)
from gardenexport.core.monitor import ErrorMonitor
from gardenexport.core.schema import get_current_schema_version
from gardenexport.core.validation import format_validation_result, validate_before_export
from gardenexport.crud.repo import DocumentSource


__all__ = ["BulkExportFilters", "BulkExportOptions", "Exporter", "single_document_payload"]

logger = logging.getLogger(__name__)

DOCUMENT_STEM = "document"
README_NAME = "README.md"


def sanitize_title(title: str) -> str:
    """Keep letters, digits, spaces and hyphens; spaces become hyphens; lowercase."""
    cleaned = re.sub(r"[^a-z0-9\s-]", "", title, flags=re.IGNORECASE)
    return re.sub(r"\s+", "-", cleaned).lower()


def file_stem(record: DocumentRecord, naming: str) -> str:
    if naming == "title":
        return sanitize_title(record.title) or record.id
    if naming == "id":
        return record.id
    return record.slug or record.id


def file_suffix(name: str) -> str:
    """'document.meta.json' -> '.meta.json'; names without the converter stem keep their last extension."""
    if name.startswith(DOCUMENT_STEM + "."):
        return name[len(DOCUMENT_STEM):]
    return "." + name.rsplit(".", 1)[-1] if "." in name else ""


def build_readme(exported: int, selected: int, options: BulkExportOptions, exported_at: datetime) -> str:
    settings = options.settings
    lines = [
        "# Digital Garden Export",
        "",
        f"**Export Date:** {exported_at.isoformat()}",
        f"**Format:** {options.format.value}",
        f"**Notes Exported:** {exported}",
    ]
    if selected != exported:
        lines.append(f"**Notes Skipped:** {selected - exported}")
    lines += [
        "",
        "## About This Export",
        "",
        f"This archive contains your Digital Garden notes exported in {options.format.value.upper()} format.",
        "",
    ]
    if options.format == ExportFormat.markdown and settings.markdown.include_metadata:
        lines += [
            "### Metadata Files",
            "",
            "Each note includes a `.meta.json` file containing:",
            "- Tags with colors",
            "- Wiki-link relationships",
            "- Callout information",
            "- Custom metadata",
            "",
            "To restore semantic information when re-importing, keep each .md file next to its .meta.json file.",
            "",
        ]
    lines += [
        "## Folder Structure",
        "",
        "The folder hierarchy from your Digital Garden has been preserved."
        if settings.bulk_export.include_structure
        else "All notes are in a flat structure (no folders).",
        "",
        "## File Naming",
        "",
        f"Files are named using: **{settings.bulk_export.file_naming}**",
        "",
    ]
    return "\n".join(lines)


def single_document_payload(result: ConversionResult) -> tuple[bytes, str, str]:
    """(content, mime type, file name) of the primary file, for direct delivery."""
    if not result.files:
        raise ExportFailedError("Conversion produced no files", result.warnings)
    primary = result.files[0]
    content = primary.content.encode("utf-8") if isinstance(primary.content, str) else primary.content
    return content, primary.mime_type, primary.name


class _Archive:
    """zipfile wrapper whose writes are serialized and whose paths are unique."""

    def __init__(self, compression_format: str):
        self.buffer = io.BytesIO()
        # a zip either way; only "zip" deflates
        if compression_format == "zip":
            self.zip = zipfile.ZipFile(self.buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=9)
        else:
            self.zip = zipfile.ZipFile(self.buffer, "w", zipfile.ZIP_STORED)
        self.names: set[str] = set()
        self._lock = threading.Lock()

    def add_document(self, folder: str, stem: str, fallback: str, files: list[ConvertedFile]) -> list[str]:
        """Write every file of one document; a stem already taken in folder gets '-{fallback}'."""
        with self._lock:
            paths = [f"{folder}{stem}{file_suffix(f.name)}" for f in files]
            if any(p in self.names for p in paths):
                paths = [f"{folder}{stem}-{fallback}{file_suffix(f.name)}" for f in files]
            for path, file in zip(paths, files):
                self.zip.writestr(path, file.content)
                self.names.add(path)
            return paths

    def add(self, path: str, content: str) -> None:
        with self._lock:
            self.zip.writestr(path, content)
            self.names.add(path)

    def close(self) -> bytes:
        self.zip.close()
        return self.buffer.getvalue()


class Exporter:
    """Runs exports against a record supplier, reporting failures to an owned ErrorMonitor."""

    def __init__(self, source: DocumentSource, monitor: ErrorMonitor | None = None,
                 settings: ExportBackupSettings | None = None):
        self.source = source
        self.monitor = monitor if monitor is not None else ErrorMonitor()
        self.settings = settings or ExportBackupSettings()

    # --- shared steps ---

    def _preflight(self, record: DocumentRecord, format: ExportFormat, user_id: str):
        sidecar = generate_metadata_sidecar(record)
        result = validate_before_export(record.tree, sidecar)
        if not result.valid:
            logger.warning("Validation issues for note %s:\n%s", record.id, format_validation_result(result))
        if result.errors or result.warnings:
            self.monitor.log_validation(record.id, format.value, user_id, result)
        return sidecar

    def _convert(self, record: DocumentRecord, format: ExportFormat, user_id: str,
                 settings: ExportBackupSettings) -> ConversionResult:
        if not isinstance(record.tree, dict):
            raise NotANoteError(f"Content {record.id} has no document tree")
        sidecar = self._preflight(record, format, user_id)
        return convert_document(record.tree, ConversionOptions(format=format, settings=settings, metadata=sidecar))

    def _folder_path(self, record: DocumentRecord) -> str:
        slugs = [a.slug for a in self.source.get_ancestors(record.id)]
        return "/".join(slugs) + "/" if slugs else ""

    # --- bulk ---

    def _export_one(self, record: DocumentRecord, options: BulkExportOptions, archive: _Archive) -> bool:
        """Convert one record into the archive. Returns False when conversion reported failure."""
        result = self._convert(record, options.format, options.user_id, options.settings)
        if not result.success:
            warnings = ", ".join(result.warnings)
            logger.error("Failed to convert note %s: %s", record.id, warnings)
            self.monitor.log_error(
                content_id=record.id,
                format=options.format.value,
                user_id=options.user_id,
                schema_version=get_current_schema_version(),
                error_type=ErrorType.conversion,
                error_code="CONVERSION_FAILED",
                error_message=f"Conversion failed: {warnings}",
            )
            return False

        bulk = options.settings.bulk_export
        folder = self._folder_path(record) if bulk.include_structure else ""
        archive.add_document(folder, file_stem(record, bulk.file_naming), record.id, result.files)
        return True

    def export_vault(self, options: BulkExportOptions) -> bytes:
        """Export every matching note into a zip archive and return its bytes.

        Batches of settings.bulk_export.batch_size run concurrently; the next batch
        starts only after the previous one has settled.
        """
        records = self.source.find_documents(options.user_id, options.filters)
        bulk = options.settings.bulk_export
        archive = _Archive(bulk.compression_format)
        exported = 0
        logger.info("Exporting %d note(s) as %s in batches of %d", len(records), options.format.value, bulk.batch_size)

        with ThreadPoolExecutor(max_workers=bulk.batch_size) as executor:
            for start in range(0, len(records), bulk.batch_size):
                batch = records[start:start + bulk.batch_size]
                futures = {executor.submit(self._export_one, record, options, archive): record for record in batch}
                for future in as_completed(futures):
                    record = futures[future]
                    try:
                        if future.result():
                            exported += 1
                    except Exception as e:
                        logger.error("Error exporting note %s: %s", record.id, e, exc_info=e)
                        self.monitor.log_exception(
                            e, content_id=record.id, format=options.format.value,
                            user_id=options.user_id, schema_version=get_current_schema_version(),
                        )

        archive.add(README_NAME, build_readme(exported, len(records), options, datetime.now(timezone.utc)))
        logger.info("Exported %d of %d note(s)", exported, len(records))
        return archive.close()

    # --- single ---

    def export_single_document(self, content_id: str, user_id: str,
                               format: ExportFormat | str = ExportFormat.markdown,
                               settings: ExportBackupSettings | None = None) -> ConversionResult:
        """Convert one owned note. Raises instead of skipping: missing, not a note, or failed."""
        format = parse_format(format)
        record = self.source.get_document(content_id)
        if record is None or record.owner_id != user_id:
            raise DocumentNotFoundError(f"Content {content_id} not found or access denied")
        if record.tree is None:
            raise NotANoteError(f"Content {content_id} is not a note")

        try:
            result = self._convert(record, format, user_id, settings or self.settings)
        except ExportError:
            raise
        except Exception as e:
            self.monitor.log_exception(e, content_id, format.value, user_id, get_current_schema_version())
            raise ExportFailedError(f"Export of {content_id} failed: {e}") from e

        if not result.success:
            self.monitor.log_error(
                content_id=content_id,
                format=format.value,
                user_id=user_id,
                schema_version=get_current_schema_version(),
                error_type=ErrorType.conversion,
                error_code="CONVERSION_FAILED",
                error_message=f"Conversion failed: {', '.join(result.warnings)}",
            )
            raise ExportFailedError(f"Conversion of {content_id} to {format.value} failed", result.warnings)
        return result
