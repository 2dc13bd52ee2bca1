from __future__ import annotations
from sqlmodel import Session, select

from gardenexport.core.models import BulkExportFilters, DocumentRecord, SidecarTag
from gardenexport.crud.models import ContentNode, ContentTag, NotePayload, Tag
from gardenexport.crud.repo import DocumentSource


def _row_to_record(node: ContentNode, payload: NotePayload | None) -> DocumentRecord:
    return DocumentRecord(
        id=node.id,
        owner_id=node.owner_id,
        title=node.title,
        slug=node.slug,
        parent_id=node.parent_id,
        created_at=node.created_at,
        updated_at=node.updated_at,
        deleted_at=node.deleted_at,
        tree=payload.tree if payload else None,
        custom=dict(node.custom or {}),
        tags=[SidecarTag(id=t.id, name=t.name, slug=t.slug, color=t.color) for t in node.tags],
    )


class SQLSource(DocumentSource):
    """Records from the sqlmodel tables. Opens a short session per call so export workers can share it."""

    def __init__(self, engine):
        self.engine = engine

    def find_documents(self, owner_id: str, filters: BulkExportFilters | None = None) -> list[DocumentRecord]:
        filters = filters or BulkExportFilters()
        stmt = (
            select(ContentNode, NotePayload)
            .join(NotePayload, NotePayload.content_id == ContentNode.id)
            .where(ContentNode.owner_id == owner_id)
        )
        if not filters.include_deleted:
            stmt = stmt.where(ContentNode.deleted_at.is_(None))
        if filters.parent_id:
            stmt = stmt.where(ContentNode.parent_id == filters.parent_id)
        if filters.tags:
            tagged = select(ContentTag.content_id).join(Tag, Tag.id == ContentTag.tag_id).where(Tag.slug.in_(filters.tags))
            stmt = stmt.where(ContentNode.id.in_(tagged))
        if filters.date_range:
            stmt = stmt.where(
                ContentNode.created_at >= filters.date_range.start,
                ContentNode.created_at <= filters.date_range.end,
            )
        stmt = stmt.order_by(ContentNode.created_at)

        with Session(self.engine) as session:
            return [_row_to_record(node, payload) for node, payload in session.exec(stmt).all()]

    def get_document(self, content_id: str) -> DocumentRecord | None:
        with Session(self.engine) as session:
            node = session.get(ContentNode, content_id)
            if node is None:
                return None
            return _row_to_record(node, session.get(NotePayload, content_id))

    def get_ancestors(self, content_id: str) -> list[DocumentRecord]:
        chain: list[DocumentRecord] = []
        seen = {content_id}
        with Session(self.engine) as session:
            node = session.get(ContentNode, content_id)
            while node is not None and node.parent_id and node.parent_id not in seen:
                seen.add(node.parent_id)
                node = session.get(ContentNode, node.parent_id)
                if node is not None:
                    chain.insert(0, _row_to_record(node, session.get(NotePayload, node.id)))
        return chain

    def add(self, record: DocumentRecord) -> DocumentRecord:
        """Insert or replace a record, its tree, and its tag associations."""
        with Session(self.engine) as session:
            node = session.get(ContentNode, record.id) or ContentNode(id=record.id, owner_id=record.owner_id,
                title=record.title, slug=record.slug)
            node.owner_id = record.owner_id
            node.title = record.title
            node.slug = record.slug
            node.parent_id = record.parent_id
            node.custom = dict(record.custom) or None
            node.created_at = record.created_at
            node.updated_at = record.updated_at
            node.deleted_at = record.deleted_at
            session.add(node)

            payload = session.get(NotePayload, record.id)
            if record.tree is not None:
                if payload is None:
                    payload = NotePayload(content_id=record.id, tree=record.tree)
                payload.tree = record.tree
                session.add(payload)
            elif payload is not None:
                session.delete(payload)

            for link in session.exec(select(ContentTag).where(ContentTag.content_id == record.id)).all():
                session.delete(link)
            session.flush()
            for tag in record.tags:
                row = session.get(Tag, tag.id) or Tag(id=tag.id, name=tag.name, slug=tag.slug or tag.name.lower())
                row.name, row.color = tag.name, tag.color
                session.add(row)
                session.add(ContentTag(content_id=record.id, tag_id=tag.id))

            session.commit()
            return _row_to_record(node, payload if record.tree is not None else None)
