import logging
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from contentai.config import settings
from contentai.editor.exceptions import (
    GenerationFailure,
    NoPendingSuggestion,
    SessionClosed,
    StaleSpanFailure,
)
from contentai.editor.session import DraftSession
from contentai.generation.service import TextGenerator

logger = logging.getLogger(__name__)

INSERT_SEPARATOR = "\n\n"


class SuggestionState(str, Enum):
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    DISCARDED = "discarded"


class AcceptMode(str, Enum):
    REPLACE = "replace"
    INSERT_BELOW = "insert_below"


class Span(BaseModel):
    """A selected substring of the live content, or an insertion point when empty."""

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    text: str = ""

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_bounds(self) -> "Span":
        if self.end < self.start:
            raise ValueError("Span end must not precede its start")
        if len(self.text) != self.end - self.start:
            raise ValueError("Span text length must match its offsets")
        return self

    @classmethod
    def select(cls, content: str, start: int, end: int) -> "Span":
        if not 0 <= start <= end <= len(content):
            raise ValueError(f"Selection [{start}, {end}) is outside the content (length {len(content)})")
        return cls(start=start, end=end, text=content[start:end])

    @property
    def is_insertion_point(self) -> bool:
        return self.start == self.end

    def matches(self, content: str) -> bool:
        return content[self.start:self.end] == self.text


class PendingSuggestion(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    source_span: Span
    instruction: str
    generated_text: str
    state: SuggestionState = SuggestionState.PROPOSED


class SuggestionStaging:
    """Stages generated text against a selection until the user accepts it.

    Generated text only reaches the draft through :meth:`accept`, which goes
    through the session's ``edit`` so the draft becomes dirty like any other
    edit. Nothing here saves.
    """

    def __init__(
        self,
        session: DraftSession,
        generator: TextGenerator,
        field: str = "content",
        document_kind: str = "canvas",
    ):
        self.session = session
        self.generator = generator
        self.field = field
        self.document_kind = document_kind
        self._active: Optional[PendingSuggestion] = None
        self._request_seq = 0
        session.on_close(self.discard)

    @property
    def active(self) -> Optional[PendingSuggestion]:
        return self._active

    def _content(self) -> str:
        return self.session.get(self.field) or ""

    async def propose(self, span: Span, instruction: str) -> PendingSuggestion:
        if self.session.closed:
            raise SessionClosed(self.session.document_id)

        content = self._content()
        if not span.matches(content):
            raise StaleSpanFailure(span.text, content[span.start:span.end])
        if not span.is_insertion_point and len(span.text.strip()) < settings.MIN_SELECTION_LENGTH:
            raise ValueError(
                f"Select at least {settings.MIN_SELECTION_LENGTH} characters to request a suggestion"
            )

        # A new request supersedes whatever was pending
        self.discard()
        self._request_seq += 1
        request = self._request_seq

        try:
            generated = await self.generator.generate_edit(
                selection=span.text,
                instruction=instruction,
                document=content,
                title=self.session.get("title") or "",
                document_kind=self.document_kind,
                start=span.start,
                end=span.end,
            )
        except GenerationFailure:
            if request == self._request_seq:
                self._active = None
            raise

        if not generated or not generated.strip():
            if request == self._request_seq:
                self._active = None
            raise GenerationFailure("empty response")

        suggestion = PendingSuggestion(
            source_span=span,
            instruction=instruction,
            generated_text=generated.strip(),
        )
        if request != self._request_seq or self.session.closed:
            logger.info(f"Dropping superseded suggestion for document {self.session.document_id}")
            suggestion.state = SuggestionState.DISCARDED
            return suggestion

        self._active = suggestion
        return suggestion

    def accept(self, mode: AcceptMode = AcceptMode.REPLACE) -> PendingSuggestion:
        suggestion = self._active
        if suggestion is None or suggestion.state != SuggestionState.PROPOSED:
            raise NoPendingSuggestion()
        if self.session.closed:
            raise SessionClosed(self.session.document_id)

        content = self._content()
        span = suggestion.source_span
        if not span.matches(content):
            self.discard()
            raise StaleSpanFailure(span.text, content[span.start:span.end])

        mode = AcceptMode(mode)
        generated = suggestion.generated_text
        if mode == AcceptMode.REPLACE or span.is_insertion_point:
            updated = content[:span.start] + generated + content[span.end:]
        else:
            updated = content[:span.end] + INSERT_SEPARATOR + generated + content[span.end:]

        self.session.edit(self.field, updated)
        suggestion.state = SuggestionState.ACCEPTED
        self._active = None
        logger.info(f"Suggestion {suggestion.id} accepted ({mode.value}) on document {self.session.document_id}")
        return suggestion

    def discard(self) -> None:
        if self._active is not None:
            self._active.state = SuggestionState.DISCARDED
            self._active = None
