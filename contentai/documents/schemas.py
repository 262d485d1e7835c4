from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from contentai.documents.models import DocumentKind

# Columns of the documents table; every other editable field lives in `meta`.
CORE_FIELDS = ("title", "content")


def split_fields(fields: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split a flat field mapping into (column values, meta values)."""
    columns = {k: fields[k] for k in CORE_FIELDS if k in fields}
    meta = {k: v for k, v in fields.items() if k not in CORE_FIELDS}
    return columns, meta


class DocumentRecord(BaseModel):
    id: UUID
    kind: DocumentKind
    title: str = ""
    content: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def fields(self) -> Dict[str, Any]:
        """Flat view of every editable field."""
        return {"title": self.title, "content": self.content, **self.meta}


class InitialCandidate(BaseModel):
    title: str = ""
    content: str
    model_name: Optional[str] = Field(None, description="Model that generated this draft")
    meta: Dict[str, Any] = Field(default_factory=dict)

    @property
    def fields(self) -> Dict[str, Any]:
        return {"title": self.title, "content": self.content, **self.meta}


class DocumentCreate(BaseModel):
    kind: DocumentKind = DocumentKind.CANVAS
    title: str = ""
    content: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)
    candidates: List[InitialCandidate] = Field(
        default=[], description="Competing AI-generated first drafts, one initial snapshot each"
    )
