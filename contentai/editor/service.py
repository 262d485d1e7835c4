import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID, uuid4

from contentai.config import settings
from contentai.documents.models import ChangeType, DocumentKind
from contentai.documents.schemas import DocumentCreate, DocumentRecord
from contentai.documents.store import DocumentNotFound, DocumentStore
from contentai.editor.autosave import AutosaveScheduler
from contentai.editor.controller import SaveRestoreController
from contentai.editor.exceptions import (
    AwaitingPrimarySelection,
    PersistenceFailure,
    SessionNotFound,
)
from contentai.editor.guard import LeaveDecision, LeaveReason, NavigationGuard, Prompt
from contentai.editor.initial import InitialVersionSelection, SelectionState, create_with_candidates
from contentai.editor.session import DraftSession
from contentai.editor.snapshots import Snapshot, SnapshotLog
from contentai.editor.suggestions import AcceptMode, PendingSuggestion, Span, SuggestionStaging
from contentai.generation.prompts import resolve_instruction
from contentai.generation.service import TextGenerator

logger = logging.getLogger(__name__)

# Saved by their own debounce timer and left out of dirty tracking
DEBOUNCED_FIELDS = ("transcript",)


class EditorSession:
    """One open editor: draft state plus the components that act on it."""

    def __init__(
        self,
        session_id: UUID,
        kind: DocumentKind,
        draft: DraftSession,
        controller: SaveRestoreController,
        scheduler: AutosaveScheduler,
        guard: NavigationGuard,
        staging: SuggestionStaging,
    ):
        self.id = session_id
        self.kind = kind
        self.draft = draft
        self.controller = controller
        self.scheduler = scheduler
        self.guard = guard
        self.staging = staging

    @property
    def document_id(self) -> UUID:
        return self.draft.document_id

    @property
    def closed(self) -> bool:
        return self.draft.closed

    def edit(self, field: str, value: Any) -> None:
        self.draft.edit(field, value)

    def edit_many(self, fields: Mapping[str, Any]) -> None:
        for name, value in fields.items():
            self.draft.edit(name, value)

    def is_dirty(self) -> bool:
        return self.draft.is_dirty()

    async def save(self, description: Optional[str] = None) -> Snapshot:
        return await self.controller.save(ChangeType.MANUAL, description)

    async def restore(self, snapshot_id: UUID) -> Snapshot:
        return await self.controller.restore(snapshot_id)

    async def propose(
        self,
        start: int,
        end: int,
        prompt: Optional[str] = None,
        action: Optional[str] = None,
        text: Optional[str] = None,
    ) -> PendingSuggestion:
        """Request a suggestion for ``[start, end)`` of the content.

        When ``text`` is given it is the selection as the client saw it, and a
        mismatch with the live content is a stale span.
        """
        instruction = resolve_instruction(prompt, action)
        if text is None:
            span = Span.select(self.draft.get(self.staging.field) or "", start, end)
        else:
            span = Span(start=start, end=end, text=text)
        return await self.staging.propose(span, instruction)

    def accept(self, mode: AcceptMode = AcceptMode.REPLACE) -> PendingSuggestion:
        return self.staging.accept(mode)

    def discard(self) -> None:
        self.staging.discard()

    async def try_leave(self, prompt: Prompt, reason: LeaveReason = LeaveReason.CLOSE) -> LeaveDecision:
        decision = await self.guard.try_leave(prompt, reason)
        if decision.allowed:
            await self.aclose()
        return decision

    def snapshots(self, limit: Optional[int] = None) -> List[Snapshot]:
        return self.controller.history(limit or settings.SNAPSHOT_HISTORY_LIMIT)

    async def aclose(self) -> None:
        if self.closed:
            return
        await self.scheduler.flush()
        await self.scheduler.aclose()
        self.draft.close()
        logger.info(f"Editor session {self.id} closed for document {self.document_id}")


class SessionRegistry:
    """Open editor sessions of this process, keyed by session id."""

    def __init__(self):
        self._sessions: Dict[UUID, EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: EditorSession) -> None:
        self._sessions[session.id] = session
        session.draft.on_close(lambda: self._sessions.pop(session.id, None))

    def get(self, session_id: UUID) -> EditorSession:
        session = self._sessions.get(session_id)
        if session is None or session.closed:
            raise SessionNotFound(session_id)
        return session

    def for_document(self, document_id: UUID) -> Optional[EditorSession]:
        return next(
            (s for s in self._sessions.values() if s.document_id == document_id and not s.closed),
            None,
        )

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        for session in sessions:
            await session.aclose()
        self._sessions.clear()
        if sessions:
            logger.info(f"Closed {len(sessions)} open editor session(s)")


class EditorService:
    def __init__(self, store: DocumentStore, generator: TextGenerator, registry: SessionRegistry):
        self.store = store
        self.generator = generator
        self.registry = registry

    async def _load_log(self, document_id: UUID) -> SnapshotLog:
        try:
            snapshots = await self.store.list_snapshots(document_id)
        except DocumentNotFound:
            raise
        except Exception as e:
            raise PersistenceFailure("list snapshots", document_id, e) from e
        return SnapshotLog(document_id, snapshots)

    async def _load_document(self, document_id: UUID) -> DocumentRecord:
        try:
            return await self.store.get(document_id)
        except DocumentNotFound:
            raise
        except Exception as e:
            raise PersistenceFailure("load", document_id, e) from e

    async def create_document(self, data: DocumentCreate) -> Tuple[DocumentRecord, List[Snapshot]]:
        fields = {"title": data.title, "content": data.content, **data.meta}
        if not data.candidates:
            document = await self.store.create(data.kind, fields)
            return document, []
        return await create_with_candidates(self.store, data.kind, data.candidates, fields)

    async def selection_state(self, document_id: UUID) -> SelectionState:
        log = await self._load_log(document_id)
        return InitialVersionSelection(self.store, log).state

    async def open_session(self, document_id: UUID) -> EditorSession:
        existing = self.registry.for_document(document_id)
        if existing is not None:
            logger.info(f"Reusing editor session {existing.id} for document {document_id}")
            return existing

        document = await self._load_document(document_id)
        log = await self._load_log(document_id)
        selection = InitialVersionSelection(self.store, log)
        if selection.state == SelectionState.AWAITING_PRIMARY_SELECTION:
            raise AwaitingPrimarySelection(document_id, len(selection.candidates))
        return self._start(document, log)

    def _start(self, document: DocumentRecord, log: SnapshotLog) -> EditorSession:
        draft = DraftSession.open(document, untracked=DEBOUNCED_FIELDS)
        controller = SaveRestoreController(draft, self.store, log)
        scheduler = AutosaveScheduler(draft, controller, self.store, debounced_fields=DEBOUNCED_FIELDS)
        guard = NavigationGuard(draft, controller.save)
        staging = SuggestionStaging(draft, self.generator, document_kind=document.kind.value)

        session = EditorSession(uuid4(), document.kind, draft, controller, scheduler, guard, staging)
        scheduler.start()
        self.registry.add(session)
        logger.info(f"Editor session {session.id} opened for document {document.id} ({len(log)} snapshots)")
        return session

    async def choose_primary(self, document_id: UUID, snapshot_id: UUID) -> EditorSession:
        """Pick the primary initial version and open an editor on it."""
        log = await self._load_log(document_id)
        selection = InitialVersionSelection(self.store, log)
        _, document = await selection.choose_primary(snapshot_id)
        return self._start(document, log)
