"""SQLAlchemy ORM models for the Hifz database."""

from backend.models.annotation import Annotation, AnnotationType
from backend.models.base import Base
from backend.models.cache_entry import CacheEntry
from backend.models.flashcard import Flashcard, FlashcardType

__all__ = ["Annotation", "AnnotationType", "Base", "CacheEntry", "Flashcard", "FlashcardType"]
