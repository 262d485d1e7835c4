from enum import Enum
from sqlalchemy import Column, String, Integer, Text, Boolean, ForeignKey, JSON, UniqueConstraint, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from contentai.database import Base
from contentai.shared.models import AuditMixin

JSONType = JSON().with_variant(JSONB(), "postgresql")


class DocumentKind(str, Enum):
    CANVAS = "canvas"
    YOUTUBE_SCRIPT = "youtube_script"


class ChangeType(str, Enum):
    INITIAL = "initial"
    MANUAL = "manual"
    AUTO = "auto"
    RESTORE = "restore"


class Document(Base, AuditMixin):
    """Editable artifact: a canvas note or a YouTube script."""
    __tablename__ = "documents"

    kind = Column(SAEnum(DocumentKind), nullable=False, default=DocumentKind.CANVAS)
    title = Column(String, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    # status, category, transcript, folder_id ...
    meta = Column("metadata", JSONType, nullable=False, default=dict)

    snapshots = relationship(
        "DocumentSnapshot",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentSnapshot.sequence",
    )


class DocumentSnapshot(Base, AuditMixin):
    """Append-only point-in-time copy of a document's versioned fields."""
    __tablename__ = "document_snapshots"
    __table_args__ = (
        UniqueConstraint("document_id", "sequence", name="uq_document_snapshots_sequence"),
    )

    document_id = Column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    change_type = Column(SAEnum(ChangeType), nullable=False)
    description = Column(String, nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    model_name = Column(String, nullable=True)  # set on AI-generated initial candidates

    fields = Column(JSONType, nullable=False, default=dict)

    document = relationship("Document", back_populates="snapshots")
