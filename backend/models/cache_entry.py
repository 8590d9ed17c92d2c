"""Key-value rows backing the verse cache."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.config import utcnow
from backend.models.base import Base


class CacheEntry(Base):
    """A cached API payload, addressed by (store, key)."""

    __tablename__ = "cache_entries"

    store: Mapped[str] = mapped_column(String(20), primary_key=True)  # pages, verses
    key: Mapped[str] = mapped_column(String(100), primary_key=True)  # page_1, verse_2_255
    data: Mapped[dict | list] = mapped_column(JSON, nullable=False)
    cached_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
