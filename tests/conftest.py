import asyncio
from typing import Any, Dict, List, Mapping, Optional, Set
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from contentai.documents.models import ChangeType, DocumentKind
from contentai.documents.schemas import DocumentRecord, split_fields
from contentai.documents.store import DocumentNotFound
from contentai.editor.exceptions import GenerationFailure
from contentai.editor.snapshots import Snapshot
from contentai.shared.models import utcnow


class StoreDown(ConnectionError):
    pass


class InMemoryDocumentStore:
    """Document store kept in dicts, with hooks to fail or hold calls."""

    def __init__(self):
        self.documents: Dict[UUID, DocumentRecord] = {}
        self.snapshots: Dict[UUID, List[Snapshot]] = {}
        self.calls: List[tuple] = []
        self.failing: Set[str] = set()
        # When set, update() waits on it, keeping a save in flight
        self.update_gate: Optional[asyncio.Event] = None

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreDown(f"{operation} unavailable")

    async def create(self, kind: DocumentKind, fields: Mapping[str, Any]) -> DocumentRecord:
        self._check("create")
        columns, meta = split_fields(fields)
        now = utcnow()
        record = DocumentRecord(id=uuid4(), kind=kind, meta=meta, created_at=now, updated_at=now, **columns)
        self.documents[record.id] = record
        self.snapshots[record.id] = []
        return record

    async def get(self, document_id: UUID) -> DocumentRecord:
        self._check("get")
        if document_id not in self.documents:
            raise DocumentNotFound(document_id)
        return self.documents[document_id]

    async def update(self, document_id: UUID, fields: Mapping[str, Any]) -> DocumentRecord:
        self.calls.append(("update", document_id, dict(fields)))
        if self.update_gate is not None:
            await self.update_gate.wait()
        self._check("update")
        record = await self.get(document_id)
        columns, meta = split_fields(fields)
        record = record.model_copy(update={**columns, "meta": {**record.meta, **meta}, "updated_at": utcnow()})
        self.documents[document_id] = record
        return record

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
        self.calls.append(("create_snapshot", document_id, change_type))
        self._check("create_snapshot")
        await self.get(document_id)
        if any(s.sequence == sequence for s in self.snapshots[document_id]):
            raise ValueError(f"Duplicate sequence {sequence}")
        snapshot = Snapshot(
            id=uuid4(),
            document_id=document_id,
            sequence=sequence,
            change_type=change_type,
            fields=dict(fields),
            description=description,
            created_at=utcnow(),
            is_primary=is_primary,
            model_name=model_name,
        )
        self.snapshots[document_id].append(snapshot)
        return snapshot

    async def list_snapshots(
        self,
        document_id: UUID,
        *,
        change_type: Optional[ChangeType] = None,
        limit: Optional[int] = None,
    ) -> List[Snapshot]:
        self._check("list_snapshots")
        items = [
            s for s in self.snapshots.get(document_id, [])
            if change_type is None or s.change_type == change_type
        ]
        items.sort(key=lambda s: s.order_key, reverse=True)
        return items[:limit] if limit is not None else items

    async def mark_primary(self, snapshot_id: UUID) -> Snapshot:
        self._check("mark_primary")
        for document_id, items in self.snapshots.items():
            for index, snapshot in enumerate(items):
                if snapshot.id == snapshot_id:
                    flagged = snapshot.model_copy(update={"is_primary": True})
                    items[index] = flagged
                    return flagged
        raise ValueError(f"Snapshot {snapshot_id} not found")

    async def delete(self, document_id: UUID) -> None:
        await self.get(document_id)
        del self.documents[document_id]
        self.snapshots.pop(document_id, None)

    def updates(self) -> List[Dict[str, Any]]:
        return [call[2] for call in self.calls if call[0] == "update"]


class FakeGenerator:
    def __init__(self, reply: str = "a sharper sentence"):
        self.reply = reply
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt, history=()):
        return self.reply

    async def generate_edit(self, **kwargs) -> str:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.reply


class GatedGenerator(FakeGenerator):
    """Each call waits for its own event, so tests choose the completion order."""

    def __init__(self, replies: List[str]):
        super().__init__()
        self.replies = list(replies)
        self.gates: List[asyncio.Event] = []

    async def generate_edit(self, **kwargs) -> str:
        self.calls.append(kwargs)
        gate = asyncio.Event()
        self.gates.append(gate)
        reply = self.replies[len(self.calls) - 1]
        await gate.wait()
        if reply is None:
            raise GenerationFailure("provider error")
        return reply


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest_asyncio.fixture
async def document(store: InMemoryDocumentStore) -> DocumentRecord:
    return await store.create(
        DocumentKind.CANVAS,
        {"title": "Launch notes", "content": "hello world", "status": "draft"},
    )
