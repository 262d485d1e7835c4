from typing import Optional
from uuid import UUID


class EditorError(Exception):
    """Base class for failures scoped to a single editor operation."""


class PersistenceFailure(EditorError):
    """The persistence collaborator could not be reached or rejected the write."""

    def __init__(self, operation: str, document_id: UUID, error: Optional[Exception] = None):
        self.operation = operation
        self.document_id = document_id
        self.error = error
        detail = f": {error}" if error else ""
        super().__init__(f"{operation} failed for document {document_id}{detail}")


class GenerationFailure(EditorError):
    """The generation collaborator errored, timed out or returned empty content."""

    def __init__(self, reason: str, error: Optional[Exception] = None):
        self.reason = reason
        self.error = error
        super().__init__(f"Generation failed: {reason}")


class StaleSpanFailure(EditorError):
    """The selected span no longer matches the live content verbatim."""

    def __init__(self, expected: str, found: str):
        self.expected = expected
        self.found = found
        super().__init__("Selection changed since the suggestion was requested; select the text again")


class ConcurrentSaveSuppressed(EditorError):
    """Signal that a save was requested while another one was in flight."""


class SessionClosed(EditorError):
    def __init__(self, document_id: UUID):
        self.document_id = document_id
        super().__init__(f"Draft session for document {document_id} is closed")


class SnapshotNotFound(EditorError, LookupError):
    def __init__(self, snapshot_id: UUID, document_id: UUID):
        self.snapshot_id = snapshot_id
        self.document_id = document_id
        super().__init__(f"Snapshot {snapshot_id} not found for document {document_id}")


class NoPendingSuggestion(EditorError):
    def __init__(self):
        super().__init__("No suggestion is awaiting a decision")


class AwaitingPrimarySelection(EditorError):
    """The document has competing initial drafts and none was chosen yet."""

    def __init__(self, document_id: UUID, candidate_count: int):
        self.document_id = document_id
        self.candidate_count = candidate_count
        super().__init__(
            f"Document {document_id} has {candidate_count} initial versions; choose the primary one first"
        )


class InvalidSelectionState(EditorError):
    def __init__(self, message: str):
        super().__init__(message)


class SessionNotFound(EditorError, LookupError):
    def __init__(self, session_id: UUID):
        self.session_id = session_id
        super().__init__(f"Editor session {session_id} is not open")
