"""Choosing the primary draft among competing initial versions of a new document."""

import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from contentai.documents.models import ChangeType, DocumentKind
from contentai.documents.schemas import DocumentRecord, InitialCandidate
from contentai.documents.store import DocumentStore
from contentai.editor.exceptions import InvalidSelectionState, PersistenceFailure, SnapshotNotFound
from contentai.editor.snapshots import Snapshot, SnapshotLog

logger = logging.getLogger(__name__)


class SelectionState(str, Enum):
    AWAITING_PRIMARY_SELECTION = "awaiting_primary_selection"
    EDITABLE = "editable"


class InitialVersionSelection:
    """State machine ``awaiting_primary_selection -> editable``.

    A document is awaiting while it has more than one ``initial`` snapshot
    and none of them is primary. The only allowed action then is
    :meth:`choose_primary`.
    """

    def __init__(self, store: DocumentStore, log: SnapshotLog):
        self.store = store
        self.log = log

    @property
    def document_id(self) -> UUID:
        return self.log.document_id

    @property
    def candidates(self) -> List[Snapshot]:
        return self.log.initial_candidates()

    @property
    def state(self) -> SelectionState:
        candidates = self.candidates
        if len(candidates) > 1 and not any(s.is_primary for s in candidates):
            return SelectionState.AWAITING_PRIMARY_SELECTION
        return SelectionState.EDITABLE

    async def choose_primary(self, snapshot_id: UUID) -> Tuple[Snapshot, DocumentRecord]:
        if self.state != SelectionState.AWAITING_PRIMARY_SELECTION:
            raise InvalidSelectionState(
                f"Document {self.document_id} is already editable; the primary version cannot change"
            )
        chosen = next((s for s in self.candidates if s.id == snapshot_id), None)
        if chosen is None:
            raise SnapshotNotFound(snapshot_id, self.document_id)

        try:
            primary = await self.store.mark_primary(chosen.id)
            document = await self.store.update(self.document_id, chosen.fields)
        except Exception as e:
            raise PersistenceFailure("choose primary", self.document_id, e) from e

        self.log.replace_flagged(primary)
        logger.info(
            f"Snapshot #{primary.sequence} ({primary.model_name or 'unknown model'}) "
            f"chosen as primary for document {self.document_id}"
        )
        return primary, document


async def create_with_candidates(
    store: DocumentStore,
    kind: DocumentKind,
    candidates: Sequence[InitialCandidate],
    fields: Optional[dict] = None,
) -> Tuple[DocumentRecord, List[Snapshot]]:
    """Create a document and log each candidate draft as an ``initial`` snapshot.

    A lone candidate is primary right away and becomes the document state;
    several candidates leave the document awaiting a choice.
    """
    if not candidates:
        raise ValueError("At least one initial candidate is required")

    single = len(candidates) == 1
    base_fields = dict(fields or {})
    if single:
        base_fields.update(candidates[0].fields)
    document = await store.create(kind, base_fields)

    snapshots = []
    for sequence, candidate in enumerate(candidates, start=1):
        snapshots.append(await store.create_snapshot(
            document.id,
            candidate.fields,
            ChangeType.INITIAL,
            f"Initial version by {candidate.model_name}" if candidate.model_name else "Initial version",
            sequence=sequence,
            is_primary=single,
            model_name=candidate.model_name,
        ))
    return document, snapshots
