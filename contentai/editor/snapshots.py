"""Snapshot value type and the ordering rules of a document's version log."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from contentai.documents.models import ChangeType


class Snapshot(BaseModel):
    """Immutable point-in-time copy of a document's versioned fields."""

    id: UUID
    document_id: UUID
    sequence: int
    change_type: ChangeType
    fields: Dict[str, Any] = Field(default_factory=dict)
    description: Optional[str] = None
    created_at: datetime
    is_primary: bool = False
    model_name: Optional[str] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def content(self) -> str:
        return self.fields.get("content", "")

    @property
    def title(self) -> str:
        return self.fields.get("title", "")

    @property
    def order_key(self) -> tuple[int, datetime]:
        return (self.sequence, self.created_at)


class SnapshotLog:
    """In-memory, append-only view of one document's snapshots.

    Snapshots are kept in ascending ``(sequence, created_at)`` order; the last
    one is the most recent. The log never removes or rewrites an entry, it only
    accepts appends whose sequence is above the current maximum.
    """

    def __init__(self, document_id: UUID, snapshots: Iterable[Snapshot] = ()):
        self.document_id = document_id
        self._entries: List[Snapshot] = []
        for snapshot in sorted(snapshots, key=lambda s: s.order_key):
            self._check_owner(snapshot)
            self._entries.append(snapshot)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def _check_owner(self, snapshot: Snapshot) -> None:
        if snapshot.document_id != self.document_id:
            raise ValueError(
                f"Snapshot {snapshot.id} belongs to document {snapshot.document_id}, "
                f"not {self.document_id}"
            )

    @property
    def max_sequence(self) -> int:
        return self._entries[-1].sequence if self._entries else 0

    def next_sequence(self) -> int:
        return self.max_sequence + 1

    def latest(self) -> Optional[Snapshot]:
        return self._entries[-1] if self._entries else None

    def append(self, snapshot: Snapshot) -> Snapshot:
        self._check_owner(snapshot)
        if snapshot.sequence <= self.max_sequence:
            raise ValueError(
                f"Snapshot sequence {snapshot.sequence} is not above current max {self.max_sequence}"
            )
        self._entries.append(snapshot)
        return snapshot

    def get(self, snapshot_id: UUID) -> Optional[Snapshot]:
        return next((s for s in self._entries if s.id == snapshot_id), None)

    def ordered(self) -> List[Snapshot]:
        """Oldest first."""
        return list(self._entries)

    def newest_first(self, limit: Optional[int] = None) -> List[Snapshot]:
        entries = list(reversed(self._entries))
        return entries[:limit] if limit is not None else entries

    def initial_candidates(self) -> List[Snapshot]:
        return [s for s in self._entries if s.change_type == ChangeType.INITIAL]

    def primary(self) -> Optional[Snapshot]:
        return next((s for s in self.initial_candidates() if s.is_primary), None)

    def replace_flagged(self, snapshot: Snapshot) -> None:
        """Swap in the copy of an initial snapshot whose primary flag was just set."""
        for index, existing in enumerate(self._entries):
            if existing.id == snapshot.id:
                if existing.fields != snapshot.fields or existing.sequence != snapshot.sequence:
                    raise ValueError("Only the primary flag of a snapshot may change")
                self._entries[index] = snapshot
                return
        raise ValueError(f"Snapshot {snapshot.id} is not in the log")
