import logging
from uuid import UUID
from typing import Any, List, Mapping, Optional

from sqlalchemy import select, desc, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from contentai.database import AsyncSessionLocal
from contentai.documents.models import ChangeType, Document, DocumentKind, DocumentSnapshot
from contentai.documents.schemas import DocumentRecord, split_fields
from contentai.documents.store import DocumentNotFound
from contentai.editor.snapshots import Snapshot

logger = logging.getLogger(__name__)


class DocumentService:
    """SQL implementation of the document store.

    Opens a short-lived ``AsyncSession`` per call, since editor sessions outlive
    the request that opened them.
    """

    def __init__(self, session_factory: sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def _load(self, db: AsyncSession, document_id: UUID) -> Document:
        doc = await db.get(Document, document_id)
        if doc is None:
            raise DocumentNotFound(document_id)
        return doc

    async def create(self, kind: DocumentKind, fields: Mapping[str, Any]) -> DocumentRecord:
        columns, meta = split_fields(fields)
        async with self.session_factory() as db:
            doc = Document(kind=kind, meta=meta, **columns)
            db.add(doc)
            await db.commit()
            await db.refresh(doc)
            logger.info(f"Document {doc.id} created ({kind.value})")
            return DocumentRecord.model_validate(doc)

    async def get(self, document_id: UUID) -> DocumentRecord:
        async with self.session_factory() as db:
            doc = await self._load(db, document_id)
            return DocumentRecord.model_validate(doc)

    async def update(self, document_id: UUID, fields: Mapping[str, Any]) -> DocumentRecord:
        columns, meta = split_fields(fields)
        async with self.session_factory() as db:
            doc = await self._load(db, document_id)
            for name, value in columns.items():
                setattr(doc, name, value)
            if meta:
                # Reassign so the JSON column is flagged as modified
                doc.meta = {**(doc.meta or {}), **meta}
            await db.commit()
            await db.refresh(doc)
            return DocumentRecord.model_validate(doc)

    async def create_snapshot(
        self,
        document_id: UUID,
        fields: Mapping[str, Any],
        change_type: ChangeType,
        description: Optional[str] = None,
        *,
        sequence: int,
        is_primary: bool = False,
        model_name: Optional[str] = None,
    ) -> Snapshot:
        async with self.session_factory() as db:
            await self._load(db, document_id)
            snapshot = DocumentSnapshot(
                document_id=document_id,
                sequence=sequence,
                change_type=change_type,
                description=description,
                is_primary=is_primary,
                model_name=model_name,
                fields=dict(fields),
            )
            db.add(snapshot)
            await db.commit()
            await db.refresh(snapshot)
            return Snapshot.model_validate(snapshot)

    async def list_snapshots(
        self,
        document_id: UUID,
        *,
        change_type: Optional[ChangeType] = None,
        limit: Optional[int] = None,
    ) -> List[Snapshot]:
        stmt = select(DocumentSnapshot).where(DocumentSnapshot.document_id == document_id)
        if change_type is not None:
            stmt = stmt.where(DocumentSnapshot.change_type == change_type)
        stmt = stmt.order_by(desc(DocumentSnapshot.sequence), desc(DocumentSnapshot.created_at))
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [Snapshot.model_validate(s) for s in result.scalars().all()]

    async def mark_primary(self, snapshot_id: UUID) -> Snapshot:
        async with self.session_factory() as db:
            snapshot = await db.get(DocumentSnapshot, snapshot_id)
            if snapshot is None:
                raise ValueError(f"Snapshot {snapshot_id} not found")
            if snapshot.change_type != ChangeType.INITIAL:
                raise ValueError("Only initial snapshots can be marked primary")
            snapshot.is_primary = True
            await db.commit()
            await db.refresh(snapshot)
            return Snapshot.model_validate(snapshot)

    async def delete(self, document_id: UUID) -> None:
        async with self.session_factory() as db:
            await self._load(db, document_id)
            await db.execute(
                delete(DocumentSnapshot).where(DocumentSnapshot.document_id == document_id)
            )
            await db.execute(delete(Document).where(Document.id == document_id))
            await db.commit()
            logger.info(f"Document {document_id} deleted")
