from __future__ import annotations
from abc import ABC, abstractmethod
from gardenexport.core.models import BulkExportFilters, DocumentRecord


class DocumentSource(ABC):
    """Read-only supplier of document records and their hierarchy."""

    @abstractmethod
    def find_documents(self, owner_id: str, filters: BulkExportFilters | None = None) -> list[DocumentRecord]:
        """Notes (records with a tree) owned by owner_id that pass filters, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def get_document(self, content_id: str) -> DocumentRecord | None:
        raise NotImplementedError

    @abstractmethod
    def get_ancestors(self, content_id: str) -> list[DocumentRecord]:
        """Ancestors of content_id, root first, excluding the record itself."""
        raise NotImplementedError


def matches(record: DocumentRecord, owner_id: str, filters: BulkExportFilters | None) -> bool:
    """In-process equivalent of the SQL filter used by SQLSource.find_documents."""
    filters = filters or BulkExportFilters()
    if record.owner_id != owner_id or record.tree is None:
        return False
    if record.deleted_at is not None and not filters.include_deleted:
        return False
    if filters.parent_id and record.parent_id != filters.parent_id:
        return False
    if filters.tags and not {t.slug for t in record.tags} & set(filters.tags):
        return False
    if filters.date_range and not (filters.date_range.start <= record.created_at <= filters.date_range.end):
        return False
    return True
