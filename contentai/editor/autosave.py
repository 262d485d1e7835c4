"""Autosave timers owned by one draft session."""

import asyncio
import contextlib
import logging
from typing import Any, Dict, Iterable, Optional

from contentai.config import settings
from contentai.documents.models import ChangeType
from contentai.documents.store import DocumentStore
from contentai.editor.controller import SaveRestoreController
from contentai.editor.exceptions import PersistenceFailure, SessionClosed
from contentai.editor.session import DraftSession

logger = logging.getLogger(__name__)

_UNSET = object()


class AutosaveScheduler:
    """
    Runs the two autosave policies of a draft session.

    - Debounced field autosave: each edit of a debounced field restarts its
      timer; when it fires, only that field is written through the store. No
      snapshot is taken and failures are only logged.
    - Periodic full autosave: every ``interval`` seconds, if the session is
      dirty and no save is in flight, an ``auto`` save goes through the
      controller. A tick that finds a save running does nothing.

    Both timers stop when the session closes.

    Args:
        session: The draft session being edited
        controller: Save controller of that session
        store: Persistence collaborator for the debounced field writes
        interval: Seconds between periodic autosave ticks
        debounce: Seconds of inactivity before a debounced field is written
        debounced_fields: Fields written by the debounce policy

    """

    def __init__(
        self,
        session: DraftSession,
        controller: SaveRestoreController,
        store: DocumentStore,
        interval: Optional[float] = None,
        debounce: Optional[float] = None,
        debounced_fields: Iterable[str] = ("transcript",),
    ) -> None:
        self.session = session
        self.controller = controller
        self.store = store
        self.interval = interval if interval is not None else settings.AUTOSAVE_INTERVAL_SECONDS
        self.debounce = debounce if debounce is not None else settings.FIELD_AUTOSAVE_DEBOUNCE_SECONDS
        self.debounced_fields = frozenset(debounced_fields)
        #: Pending debounce timers, one per field.
        self._timers: Dict[str, asyncio.Task] = {}
        #: Last value written for each debounced field.
        self._persisted: Dict[str, Any] = {}
        self._periodic: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._periodic is not None and not self._periodic.done()

    def start(self) -> None:
        if self.running:
            return
        if self.session.closed:
            raise SessionClosed(self.session.document_id)
        baseline = self.session.baseline
        for field in self.debounced_fields:
            self._persisted[field] = baseline.get(field, _UNSET)
        self.session.on_edit(self._on_edit)
        self.session.on_close(self.stop)
        self._periodic = asyncio.create_task(self._run_periodic())
        logger.info(
            f"Autosave started for document {self.session.document_id} "
            f"(every {self.interval}s, debounce {self.debounce}s)"
        )

    def stop(self) -> None:
        """Cancel both timers; nothing fires after this returns."""
        if self._periodic is not None:
            self._periodic.cancel()
            self._periodic = None
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    async def aclose(self) -> None:
        tasks = [t for t in [self._periodic, *self._timers.values()] if t is not None]
        self.stop()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # -- debounced field autosave -----------------------------------------

    def _on_edit(self, field: str, value: Any) -> None:
        if field in self.debounced_fields:
            self.trigger(field)

    def trigger(self, field: str) -> None:
        """Restart the debounce timer of ``field``."""
        timer = self._timers.pop(field, None)
        if timer is not None:
            timer.cancel()
        self._timers[field] = asyncio.create_task(self._debounced_write(field))

    async def _debounced_write(self, field: str) -> None:
        await asyncio.sleep(self.debounce)
        self._timers.pop(field, None)
        await self._write_field(field)

    async def flush(self) -> None:
        """Write every field with a pending debounce timer right away."""
        pending = list(self._timers)
        for field in pending:
            self._timers.pop(field).cancel()
        for field in pending:
            await self._write_field(field)

    async def _write_field(self, field: str) -> None:
        if self.session.closed:
            return
        value = self.session.get(field)
        if value == self._persisted.get(field, _UNSET):
            return
        try:
            await self.store.update(self.session.document_id, {field: value})
        except Exception:
            logger.warning(
                f"Autosave of field {field!r} failed for document {self.session.document_id}",
                exc_info=True,
            )
            return
        self._persisted[field] = value

    # -- periodic full autosave -------------------------------------------

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception:
                # Keep the timer alive; the next tick retries
                logger.exception(f"Autosave tick failed for document {self.session.document_id}")

    async def tick(self) -> bool:
        """Run one periodic check. Returns True if an auto save was performed."""
        if self.session.closed or not self.session.is_dirty():
            return False
        if self.controller.save_in_flight:
            logger.debug(f"Autosave tick skipped for document {self.session.document_id}: save in flight")
            return False
        try:
            await self.controller.save(ChangeType.AUTO)
        except (PersistenceFailure, SessionClosed) as e:
            # Retried on the next tick; background failures never reach the user
            logger.warning(f"Autosave failed for document {self.session.document_id}: {e}")
            return False
        return True
