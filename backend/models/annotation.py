"""User annotations (drawings, highlights, notes) on Mushaf pages."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.config import utcnow
from backend.models.base import Base


class AnnotationType(str, Enum):
    DRAWING = "drawing"
    HIGHLIGHT = "highlight"
    UNDERLINE = "underline"
    CIRCLE = "circle"
    NOTE = "note"


class Annotation(Base):
    __tablename__ = "annotations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    page_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    verse_key: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)  # "2:255"
    data: Mapped[dict] = mapped_column(JSON, nullable=False)  # Type-specific payload
    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    modified_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
