"""Exception types raised by the export and migration layers"""


class ExportError(RuntimeError):
    """Base class for export failures that propagate to the caller."""


class DocumentNotFoundError(ExportError):
    """The requested record does not exist or is not owned by the caller."""


class NotANoteError(ExportError):
    """The requested record has no document tree to convert."""


class ExportFailedError(ExportError):
    """A single-document conversion returned success=False."""

    def __init__(self, message: str, warnings: list[str] | None = None):
        super().__init__(message)
        self.warnings = warnings or []


class UnsupportedFormatError(ExportError, ValueError):
    """No converter is registered for the requested format name."""


class MigrationError(ValueError):
    """A strict migration could not reach the target schema version."""


class ImportFailedError(ValueError):
    """An uploaded file cannot be turned into a note."""
