from contextlib import contextmanager
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from contentai.config import settings
from contentai.documents.schemas import DocumentCreate
from contentai.documents.service import DocumentService
from contentai.documents.store import DocumentNotFound, DocumentStore
from contentai.editor.exceptions import (
    AwaitingPrimarySelection,
    EditorError,
    GenerationFailure,
    InvalidSelectionState,
    NoPendingSuggestion,
    PersistenceFailure,
    SessionClosed,
    SessionNotFound,
    SnapshotNotFound,
    StaleSpanFailure,
)
from contentai.editor.guard import Resolution
from contentai.editor.schemas import (
    AcceptRequest,
    ChoosePrimaryRequest,
    DocumentCreated,
    DocumentResponse,
    EditRequest,
    LeaveRequest,
    LeaveResponse,
    ProposeRequest,
    RestoreRequest,
    RestoreResponse,
    SaveRequest,
    SessionResponse,
    SnapshotResponse,
)
from contentai.editor.service import EditorService, EditorSession, SessionRegistry
from contentai.editor.suggestions import PendingSuggestion
from contentai.generation.service import GenerationService, TextGenerator

documents_router = APIRouter(prefix="/documents", tags=["documents"])
sessions_router = APIRouter(prefix="/sessions", tags=["editor"])

registry = SessionRegistry()


def get_store() -> DocumentStore:
    return DocumentService()


def get_generator() -> TextGenerator:
    return GenerationService()


def get_registry() -> SessionRegistry:
    return registry


def get_editor_service(
    store: DocumentStore = Depends(get_store),
    generator: TextGenerator = Depends(get_generator),
    sessions: SessionRegistry = Depends(get_registry),
) -> EditorService:
    return EditorService(store, generator, sessions)


async def get_session(session_id: UUID, sessions: SessionRegistry = Depends(get_registry)) -> EditorSession:
    with editor_errors():
        return sessions.get(session_id)


@contextmanager
def editor_errors():
    """Translate editor failures into HTTP errors."""
    try:
        yield
    except (DocumentNotFound, SnapshotNotFound, SessionNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (
        StaleSpanFailure,
        NoPendingSuggestion,
        AwaitingPrimarySelection,
        InvalidSelectionState,
        SessionClosed,
    ) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except GenerationFailure as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except EditorError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _session_state(session: EditorSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        document_id=session.document_id,
        kind=session.kind,
        fields=session.draft.live,
        dirty=session.is_dirty(),
        dirty_fields=sorted(session.draft.dirty_fields()),
        guard_state=session.guard.state,
        save_in_flight=session.controller.save_in_flight,
        pending_suggestion=session.staging.active,
    )


# -- documents --------------------------------------------------------------

@documents_router.post("", response_model=DocumentCreated, status_code=201)
async def create_document(
    request: DocumentCreate,
    service: EditorService = Depends(get_editor_service),
):
    """Create a document, optionally from competing AI-generated drafts."""
    with editor_errors():
        document, snapshots = await service.create_document(request)
        state = await service.selection_state(document.id)
    return DocumentCreated(
        document=DocumentResponse(**document.model_dump(), selection_state=state),
        snapshots=[SnapshotResponse.model_validate(s) for s in snapshots],
    )


@documents_router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: UUID,
    store: DocumentStore = Depends(get_store),
    service: EditorService = Depends(get_editor_service),
):
    with editor_errors():
        document = await store.get(document_id)
        state = await service.selection_state(document_id)
    return DocumentResponse(**document.model_dump(), selection_state=state)


@documents_router.get("/{document_id}/snapshots", response_model=List[SnapshotResponse])
async def list_snapshots(
    document_id: UUID,
    limit: Optional[int] = Query(None, ge=1),
    store: DocumentStore = Depends(get_store),
):
    """Version history, most recent first."""
    with editor_errors():
        await store.get(document_id)
        snapshots = await store.list_snapshots(document_id, limit=limit or settings.SNAPSHOT_HISTORY_LIMIT)
    return [SnapshotResponse.model_validate(s) for s in snapshots]


@documents_router.post("/{document_id}/primary", response_model=SessionResponse, status_code=201)
async def choose_primary(
    document_id: UUID,
    request: ChoosePrimaryRequest,
    service: EditorService = Depends(get_editor_service),
):
    """Choose the primary initial version and open an editor on it."""
    with editor_errors():
        session = await service.choose_primary(document_id, request.snapshot_id)
    return _session_state(session)


@documents_router.post("/{document_id}/sessions", response_model=SessionResponse, status_code=201)
async def open_session(
    document_id: UUID,
    service: EditorService = Depends(get_editor_service),
):
    with editor_errors():
        session = await service.open_session(document_id)
    return _session_state(session)


# -- editor sessions --------------------------------------------------------

@sessions_router.get("/{session_id}", response_model=SessionResponse)
async def get_session_state(session: EditorSession = Depends(get_session)):
    return _session_state(session)


@sessions_router.patch("/{session_id}", response_model=SessionResponse)
async def edit_fields(request: EditRequest, session: EditorSession = Depends(get_session)):
    with editor_errors():
        session.edit_many(request.fields)
    return _session_state(session)


@sessions_router.post("/{session_id}/save", response_model=SnapshotResponse)
async def save(request: SaveRequest, session: EditorSession = Depends(get_session)):
    with editor_errors():
        snapshot = await session.save(request.description)
    return SnapshotResponse.model_validate(snapshot)


@sessions_router.get("/{session_id}/snapshots", response_model=List[SnapshotResponse])
async def session_snapshots(
    limit: Optional[int] = Query(None, ge=1),
    session: EditorSession = Depends(get_session),
):
    return [SnapshotResponse.model_validate(s) for s in session.snapshots(limit)]


@sessions_router.post("/{session_id}/restore", response_model=RestoreResponse)
async def restore(request: RestoreRequest, session: EditorSession = Depends(get_session)):
    with editor_errors():
        backup = await session.restore(request.snapshot_id)
    return RestoreResponse(backup=SnapshotResponse.model_validate(backup), session=_session_state(session))


@sessions_router.post("/{session_id}/suggestions", response_model=PendingSuggestion)
async def propose(request: ProposeRequest, session: EditorSession = Depends(get_session)):
    """Generate a suggestion for the selection; the draft is unchanged until it is accepted."""
    with editor_errors():
        return await session.propose(
            request.start,
            request.end,
            prompt=request.prompt,
            action=request.action,
            text=request.text,
        )


@sessions_router.post("/{session_id}/suggestions/accept", response_model=SessionResponse)
async def accept(request: AcceptRequest, session: EditorSession = Depends(get_session)):
    with editor_errors():
        session.accept(request.mode)
    return _session_state(session)


@sessions_router.delete("/{session_id}/suggestions", status_code=204)
async def discard(session: EditorSession = Depends(get_session)):
    session.discard()
    return Response(status_code=204)


@sessions_router.post("/{session_id}/leave", response_model=LeaveResponse)
async def leave(request: LeaveRequest, session: EditorSession = Depends(get_session)):
    """Attempt to leave the editor.

    With unsaved edits and no ``resolution`` the attempt is refused with
    ``prompt_required`` set; the client asks the user and repeats the call
    with their answer.
    """
    answer = request.resolution

    def prompt(reason):
        return answer or Resolution.CANCEL

    with editor_errors():
        decision = await session.try_leave(prompt, request.reason)
        if decision.error is not None:
            raise decision.error
    return LeaveResponse(
        allowed=decision.allowed,
        prompt_required=not decision.allowed and answer is None,
        resolution=decision.resolution,
        snapshot=SnapshotResponse.model_validate(decision.snapshot) if decision.snapshot else None,
    )


@sessions_router.delete("/{session_id}", status_code=204)
async def close_session(session: EditorSession = Depends(get_session)):
    """Close the editor without prompting; unsaved edits are dropped."""
    await session.aclose()
    return Response(status_code=204)
