from typing import Any, Dict, List, Literal, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from contentai.documents.models import ChangeType, DocumentKind
from contentai.documents.schemas import DocumentRecord
from contentai.editor.guard import GuardState, LeaveReason, Resolution
from contentai.editor.initial import SelectionState
from contentai.editor.suggestions import AcceptMode, PendingSuggestion


class SnapshotResponse(BaseModel):
    id: UUID
    document_id: UUID
    sequence: int
    change_type: ChangeType
    description: Optional[str] = None
    created_at: datetime
    is_primary: bool = False
    model_name: Optional[str] = None
    fields: Dict[str, Any]

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(DocumentRecord):
    selection_state: SelectionState = SelectionState.EDITABLE


class DocumentCreated(BaseModel):
    document: DocumentResponse
    snapshots: List[SnapshotResponse] = []


class ChoosePrimaryRequest(BaseModel):
    snapshot_id: UUID


class SessionResponse(BaseModel):
    session_id: UUID
    document_id: UUID
    kind: DocumentKind
    fields: Dict[str, Any]
    dirty: bool
    dirty_fields: List[str]
    guard_state: GuardState
    save_in_flight: bool
    pending_suggestion: Optional[PendingSuggestion] = None


class EditRequest(BaseModel):
    fields: Dict[str, Any] = Field(..., min_length=1, description="Field name to new value")


class SaveRequest(BaseModel):
    description: Optional[str] = None


class RestoreRequest(BaseModel):
    snapshot_id: UUID


class RestoreResponse(BaseModel):
    backup: SnapshotResponse
    session: SessionResponse


class ProposeRequest(BaseModel):
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    text: Optional[str] = Field(None, description="Selected text as the client saw it")
    prompt: Optional[str] = None
    action: Optional[Literal["improve", "expand", "shorten", "rewrite"]] = None


class AcceptRequest(BaseModel):
    mode: AcceptMode = AcceptMode.REPLACE


class LeaveRequest(BaseModel):
    reason: LeaveReason = LeaveReason.CLOSE
    # Answer to the unsaved-changes prompt; omitted means the user has not answered yet
    resolution: Optional[Resolution] = None


class LeaveResponse(BaseModel):
    allowed: bool
    prompt_required: bool = False
    resolution: Optional[Resolution] = None
    snapshot: Optional[SnapshotResponse] = None
