from dataclasses import dataclass, field
from gardenexport.core.models import BulkExportFilters, DocumentRecord
from gardenexport.crud.repo import DocumentSource, matches


@dataclass
class MemorySource(DocumentSource):
    _docs: dict[str, DocumentRecord] = field(default_factory=dict)

    def add(self, *records: DocumentRecord) -> None:
        for record in records:
            self._docs[record.id] = record

    def find_documents(self, owner_id: str, filters: BulkExportFilters | None = None) -> list[DocumentRecord]:
        found = [r for r in self._docs.values() if matches(r, owner_id, filters)]
        return sorted(found, key=lambda r: r.created_at)

    def get_document(self, content_id: str) -> DocumentRecord | None:
        return self._docs.get(content_id)

    def get_ancestors(self, content_id: str) -> list[DocumentRecord]:
        chain: list[DocumentRecord] = []
        seen = {content_id}
        record = self._docs.get(content_id)
        while record and record.parent_id and record.parent_id not in seen:
            seen.add(record.parent_id)
            record = self._docs.get(record.parent_id)
            if record:
                chain.insert(0, record)
        return chain
