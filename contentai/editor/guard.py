"""Navigation guard: a two-state machine over the draft session's dirty flag."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from contentai.documents.models import ChangeType
from contentai.editor.exceptions import PersistenceFailure
from contentai.editor.session import DraftSession
from contentai.editor.snapshots import Snapshot

logger = logging.getLogger(__name__)


class GuardState(str, Enum):
    CLEAN = "clean"
    GUARDED = "guarded"


class Resolution(str, Enum):
    DISCARD = "discard"
    SAVE_AND_LEAVE = "save_and_leave"
    CANCEL = "cancel"


class LeaveReason(str, Enum):
    CLOSE = "close"
    BACK = "back"
    UNLOAD = "unload"


@dataclass(frozen=True)
class LeaveDecision:
    allowed: bool
    resolution: Optional[Resolution] = None
    snapshot: Optional[Snapshot] = None
    error: Optional[Exception] = None


Prompt = Callable[[LeaveReason], Union[Resolution, Awaitable[Resolution]]]
SaveCallable = Callable[[ChangeType], Awaitable[Snapshot]]


class NavigationGuard:
    """Intercepts attempts to leave the editor while there are unsaved edits.

    The host calls :meth:`try_leave` before navigating and only navigates when
    the returned decision allows it. A discard lets exactly that attempt
    through; the guard stays armed, so repeating the gesture while the session
    is still dirty prompts again. Attempts made while a prompt is already open
    share that prompt's outcome instead of opening another one.
    """

    def __init__(self, session: DraftSession, save: SaveCallable):
        self.session = session
        self._save = save
        self._pending: Optional[asyncio.Future] = None

    @property
    def state(self) -> GuardState:
        if not self.session.closed and self.session.is_dirty():
            return GuardState.GUARDED
        return GuardState.CLEAN

    @property
    def prompting(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def try_leave(self, prompt: Prompt, reason: LeaveReason = LeaveReason.CLOSE) -> LeaveDecision:
        if self.state == GuardState.CLEAN:
            return LeaveDecision(allowed=True)

        if self.prompting:
            return await asyncio.shield(self._pending)

        self._pending = asyncio.get_running_loop().create_future()
        try:
            decision = await self._resolve(prompt, reason)
        except asyncio.CancelledError:
            self._pending.cancel()
            raise
        except Exception as e:
            self._pending.set_exception(e)
            # Mark retrieved; the exception propagates from here
            self._pending.exception()
            raise
        else:
            self._pending.set_result(decision)
            return decision
        finally:
            self._pending = None

    async def _resolve(self, prompt: Prompt, reason: LeaveReason) -> LeaveDecision:
        resolution = prompt(reason)
        if asyncio.iscoroutine(resolution) or isinstance(resolution, asyncio.Future):
            resolution = await resolution
        resolution = Resolution(resolution)

        if resolution == Resolution.CANCEL:
            return LeaveDecision(allowed=False, resolution=resolution)

        if resolution == Resolution.DISCARD:
            logger.info(f"Leaving document {self.session.document_id} with unsaved edits discarded")
            return LeaveDecision(allowed=True, resolution=resolution)

        try:
            snapshot = await self._save(ChangeType.MANUAL)
        except PersistenceFailure as e:
            logger.warning(f"Save before leaving failed for document {self.session.document_id}: {e}")
            return LeaveDecision(allowed=False, resolution=resolution, error=e)
        return LeaveDecision(allowed=True, resolution=resolution, snapshot=snapshot)
