"""Contract of the persistence collaborator used by the draft editor."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Protocol
from uuid import UUID

from contentai.documents.models import ChangeType, DocumentKind

if TYPE_CHECKING:
    from contentai.documents.schemas import DocumentRecord
    from contentai.editor.snapshots import Snapshot


class DocumentNotFound(LookupError):
    def __init__(self, document_id: UUID):
        self.document_id = document_id
        super().__init__(f'Document with ID "{document_id!s}" does not exist')


class DocumentStore(Protocol):
    async def create(self, kind: DocumentKind, fields: Mapping[str, Any]) -> DocumentRecord: ...

    async def get(self, document_id: UUID) -> DocumentRecord: ...

    async def update(self, document_id: UUID, fields: Mapping[str, Any]) -> DocumentRecord: ...

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
    ) -> Snapshot: ...

    async def list_snapshots(
        self,
        document_id: UUID,
        *,
        change_type: Optional[ChangeType] = None,
        limit: Optional[int] = None,
    ) -> List[Snapshot]:
        """Snapshots ordered by sequence, most recent first."""
        ...

    async def mark_primary(self, snapshot_id: UUID) -> Snapshot: ...

    async def delete(self, document_id: UUID) -> None: ...
