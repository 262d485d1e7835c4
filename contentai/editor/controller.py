import asyncio
import contextlib
import logging
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from contentai.documents.models import ChangeType
from contentai.documents.store import DocumentStore
from contentai.editor.exceptions import (
    ConcurrentSaveSuppressed,
    PersistenceFailure,
    SessionClosed,
    SnapshotNotFound,
)
from contentai.editor.session import DraftSession
from contentai.editor.snapshots import Snapshot, SnapshotLog

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTIONS = {
    ChangeType.MANUAL: "Saved by user",
    ChangeType.AUTO: "Auto save",
}
RESTORE_BACKUP_DESCRIPTION = "pre-restore backup"


class SaveRestoreController:
    """The single writer of a document's snapshot log.

    Saves are deduplicated: while one is in flight, further ``save`` calls
    await and return that same result instead of starting a second write.
    Restores take the same write lock, so they never interleave with a save.
    """

    def __init__(self, session: DraftSession, store: DocumentStore, log: SnapshotLog):
        self.session = session
        self.store = store
        self.log = log
        self._write_lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Task] = None

    @property
    def document_id(self) -> UUID:
        return self.session.document_id

    @property
    def save_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def save(
        self,
        change_type: ChangeType = ChangeType.MANUAL,
        description: Optional[str] = None,
    ) -> Snapshot:
        if self.save_in_flight:
            logger.debug(
                f"{ConcurrentSaveSuppressed.__name__}: {change_type.value} save for "
                f"document {self.document_id} joined the one in flight"
            )
            return await asyncio.shield(self._inflight)

        if self.session.closed:
            raise SessionClosed(self.document_id)

        task = asyncio.ensure_future(self._save(change_type, description))
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        # Retrieve the exception so a save nobody awaited does not warn on GC
        if not task.cancelled():
            task.exception()

    async def _save(self, change_type: ChangeType, description: Optional[str]) -> Snapshot:
        async with self._write_lock:
            fields = self.session.snapshot_fields()
            description = description or DEFAULT_DESCRIPTIONS.get(change_type)

            try:
                await self.store.update(self.document_id, fields)
            except Exception as e:
                raise PersistenceFailure("save", self.document_id, e) from e

            snapshot = await self._append(fields, change_type, description)

            self.session.mark_persisted(fields)
            logger.info(
                f"Document {self.document_id} saved as snapshot #{snapshot.sequence} ({change_type.value})"
            )
            return snapshot

    async def _append(
        self,
        fields: Dict[str, Any],
        change_type: ChangeType,
        description: Optional[str],
    ) -> Snapshot:
        try:
            snapshot = await self.store.create_snapshot(
                self.document_id,
                fields,
                change_type,
                description,
                sequence=self.log.next_sequence(),
            )
        except Exception as e:
            raise PersistenceFailure("snapshot", self.document_id, e) from e
        return self.log.append(snapshot)

    async def restore(self, target: Union[Snapshot, UUID]) -> Snapshot:
        """Back up the live fields, then make ``target`` the document state.

        Returns the backup snapshot.
        """
        snapshot_id = target.id if isinstance(target, Snapshot) else target
        snapshot = self.log.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFound(snapshot_id, self.document_id)
        if self.session.closed:
            raise SessionClosed(self.document_id)

        # Let an in-flight save finish first so its snapshot precedes the backup
        if self.save_in_flight:
            # A failure there is reported to that save's own caller
            with contextlib.suppress(PersistenceFailure):
                await asyncio.shield(self._inflight)

        async with self._write_lock:
            backup = await self._append(
                self.session.snapshot_fields(), ChangeType.RESTORE, RESTORE_BACKUP_DESCRIPTION
            )

            # Fields with their own writer (the transcript) are never rolled back
            fields = self.session.versioned(snapshot.fields)
            try:
                await self.store.update(self.document_id, fields)
            except Exception as e:
                raise PersistenceFailure("restore", self.document_id, e) from e

            self.session.rebase(fields)
            logger.info(
                f"Document {self.document_id} restored to snapshot #{snapshot.sequence}; "
                f"backup is #{backup.sequence}"
            )
            return backup

    def history(self, limit: Optional[int] = None) -> List[Snapshot]:
        return self.log.newest_first(limit)
