"""Pydantic schemas for API request/response models."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from backend.models.annotation import AnnotationType
from backend.models.flashcard import FlashcardType
from backend.quran.verses import TOTAL_PAGES, TOTAL_SURAHS

# --- Pages and editions ---


class PageVerifyResponse(BaseModel):
    page_number: int
    edition_id: str
    valid: bool


class AyahRefModel(BaseModel):
    surah: int = Field(ge=1, le=TOTAL_SURAHS)
    ayah: int = Field(ge=1)


class SamplePageModel(BaseModel):
    page: int = Field(ge=1, le=TOTAL_PAGES)
    first_ayah: AyahRefModel
    last_ayah: AyahRefModel


class EditionMatchRequest(BaseModel):
    """A detected line count plus sampled page boundaries from an import."""

    line_count: int = Field(gt=0)
    samples: list[SamplePageModel] = Field(default_factory=list)


class EditionResponse(BaseModel):
    id: str
    name: str
    lines_per_page: int
    total_pages: int
    has_tajweed: bool


class EditionMatchResponse(BaseModel):
    edition: EditionResponse | None


class WordTimestampResponse(BaseModel):
    word_id: str
    start_time: float
    end_time: float
    verse_key: str
    position: int
    x: float
    y: float
    width: float
    height: float


# --- Flashcards ---


class FlashcardCreate(BaseModel):
    type: FlashcardType
    surah: int = Field(ge=1, le=TOTAL_SURAHS)
    ayah: int = Field(ge=1)
    page: int = Field(ge=1, le=TOTAL_PAGES)
    front: str
    back: str
    metadata: dict[str, Any] | None = None
    id: str | None = None  # Generated when omitted


class FlashcardUpdate(BaseModel):
    front: str | None = None
    back: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("front", "back")
    @classmethod
    def reject_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class ReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=4)  # 1=Again, 2=Hard, 3=Good, 4=Easy


class FlashcardStatsResponse(BaseModel):
    total: int
    by_type: dict[str, int]
    due_today: int


# --- Annotations ---


class AnnotationCreate(BaseModel):
    type: AnnotationType
    page_number: int = Field(ge=1, le=TOTAL_PAGES)
    verse_key: str | None = None
    data: dict[str, Any]
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class AnnotationUpdate(BaseModel):
    type: AnnotationType | None = None
    page_number: int | None = Field(default=None, ge=1, le=TOTAL_PAGES)
    verse_key: str | None = None
    data: dict[str, Any] | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("type", "page_number", "data")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class AnnotationStatsResponse(BaseModel):
    total: int
    by_type: dict[str, int]
    by_page: dict[int, int]


# --- Shared ---


class ImportRequest(BaseModel):
    payload: str  # JSON produced by the matching export endpoint
    clear_existing: bool = False


class CountResponse(BaseModel):
    count: int


class HistoryResponse(BaseModel):
    can_undo: bool
    can_redo: bool
    undo: list[str]
    redo: list[str]


class CacheStatsResponse(BaseModel):
    verses: int
    pages: int
