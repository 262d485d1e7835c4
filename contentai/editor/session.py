import logging
from copy import deepcopy
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set
from uuid import UUID

from contentai.documents.schemas import DocumentRecord
from contentai.editor.exceptions import SessionClosed

logger = logging.getLogger(__name__)

EditListener = Callable[[str, Any], None]
CloseListener = Callable[[], None]


class DraftSession:
    """Live editable fields of one open document plus the last-persisted baseline.

    Only fields registered as tracked take part in dirty detection. Untracked
    fields (e.g. a transcript saved by its own debounce timer) can still be
    edited but are left out of snapshots, full saves and restores; their
    own writer owns them.
    """

    def __init__(
        self,
        document_id: UUID,
        fields: Mapping[str, Any],
        tracked: Optional[Iterable[str]] = None,
        untracked: Iterable[str] = (),
    ):
        self.document_id = document_id
        self._baseline: Dict[str, Any] = deepcopy(dict(fields))
        self._live: Dict[str, Any] = deepcopy(dict(fields))
        self._untracked: Set[str] = set(untracked)
        if tracked is not None:
            self._tracked: Set[str] = set(tracked) - self._untracked
        else:
            self._tracked = set(fields) - self._untracked
        self._closed = False
        self._edit_listeners: List[EditListener] = []
        self._close_listeners: List[CloseListener] = []

    @classmethod
    def open(
        cls,
        document: DocumentRecord,
        tracked: Optional[Iterable[str]] = None,
        untracked: Iterable[str] = (),
    ) -> "DraftSession":
        return cls(document.id, document.fields, tracked, untracked)

    # -- state -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tracked_fields(self) -> Set[str]:
        return set(self._tracked)

    @property
    def live(self) -> Dict[str, Any]:
        return deepcopy(self._live)

    @property
    def baseline(self) -> Dict[str, Any]:
        return deepcopy(self._baseline)

    def get(self, field: str, default: Any = None) -> Any:
        return self._live.get(field, default)

    @property
    def untracked_fields(self) -> Set[str]:
        return set(self._untracked)

    def track(self, field: str) -> None:
        self._untracked.discard(field)
        self._tracked.add(field)

    def untrack(self, field: str) -> None:
        self._tracked.discard(field)
        self._untracked.add(field)

    def versioned(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """``fields`` without the untracked ones."""
        return {name: value for name, value in fields.items() if name not in self._untracked}

    def dirty_fields(self) -> Set[str]:
        return {
            name for name in self._tracked
            if self._live.get(name) != self._baseline.get(name)
        }

    def is_dirty(self) -> bool:
        return bool(self.dirty_fields())

    # -- mutation --------------------------------------------------------

    def edit(self, field: str, value: Any) -> None:
        if self._closed:
            raise SessionClosed(self.document_id)
        if field not in self._untracked:
            self._tracked.add(field)
        self._live[field] = value
        for listener in list(self._edit_listeners):
            listener(field, value)

    def snapshot_fields(self) -> Dict[str, Any]:
        """Copy of the versioned live fields, as handed to a save."""
        return deepcopy(self.versioned(self._live))

    def rebase(self, fields: Mapping[str, Any]) -> None:
        """Make ``fields`` both the baseline and the live state.

        Untracked fields in ``fields`` are ignored.
        """
        if self._closed:
            logger.debug(f"Ignoring rebase of closed session for document {self.document_id}")
            return
        merged = {**self._live, **deepcopy(self.versioned(fields))}
        self._baseline = deepcopy(merged)
        self._live = merged

    def mark_persisted(self, fields: Mapping[str, Any]) -> None:
        """Move the baseline to values just written, keeping any newer live edits."""
        if self._closed:
            logger.debug(f"Ignoring save result for closed session of document {self.document_id}")
            return
        self._baseline.update(deepcopy(dict(fields)))

    # -- lifecycle -------------------------------------------------------

    def on_edit(self, listener: EditListener) -> None:
        self._edit_listeners.append(listener)

    def on_close(self, listener: CloseListener) -> None:
        self._close_listeners.append(listener)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for listener in list(self._close_listeners):
            listener()
        self._edit_listeners.clear()
        self._close_listeners.clear()
