"""API routes for flashcards and their reviews."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from backend.api.deps import get_context
from backend.api.schemas import (
    CountResponse,
    FlashcardCreate,
    FlashcardStatsResponse,
    FlashcardUpdate,
    ImportRequest,
    ReviewRequest,
)
from backend.context import AppContext
from backend.models.flashcard import FlashcardType
from backend.stores.flashcards import FlashcardData, make_flashcard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])


def _data(cards) -> list[FlashcardData]:
    return [FlashcardData.model_validate(card) for card in cards]


@router.post("", response_model=FlashcardData, status_code=status.HTTP_201_CREATED)
async def create_flashcard(
    body: FlashcardCreate, ctx: AppContext = Depends(get_context)
) -> FlashcardData:
    flashcard = make_flashcard(
        body.type,
        body.surah,
        body.ayah,
        body.page,
        body.front,
        body.back,
        scheduler=ctx.scheduler,
        metadata=body.metadata,
        card_id=body.id,
    )
    created = await ctx.flashcards.create(flashcard)
    logger.info("Created %s flashcard %s for %s", created.type, created.id, created.verse_key)
    return FlashcardData.model_validate(created)


@router.get("", response_model=list[FlashcardData])
async def list_flashcards(
    type: FlashcardType | None = None,
    surah: int | None = Query(default=None, ge=1),
    page: int | None = Query(default=None, ge=1),
    ctx: AppContext = Depends(get_context),
) -> list[FlashcardData]:
    """List cards, narrowed by one index: type, then surah, then page."""
    if type is not None:
        cards = await ctx.flashcards.get_by_type(type)
    elif surah is not None:
        cards = await ctx.flashcards.get_by_surah(surah)
    elif page is not None:
        cards = await ctx.flashcards.get_by_page(page)
    else:
        cards = await ctx.flashcards.get_all()
    return _data(cards)


@router.get("/due", response_model=list[FlashcardData])
async def due_flashcards(
    type: FlashcardType | None = None, ctx: AppContext = Depends(get_context)
) -> list[FlashcardData]:
    if type is not None:
        return _data(await ctx.flashcards.get_due_cards_by_type(type))
    return _data(await ctx.flashcards.get_due_cards())


@router.get("/stats", response_model=FlashcardStatsResponse)
async def flashcard_stats(ctx: AppContext = Depends(get_context)) -> FlashcardStatsResponse:
    return FlashcardStatsResponse(**await ctx.flashcards.get_stats())


@router.get("/export")
async def export_flashcards(ctx: AppContext = Depends(get_context)) -> Response:
    return Response(content=await ctx.flashcards.export_json(), media_type="application/json")


@router.post("/import", response_model=CountResponse)
async def import_flashcards(
    body: ImportRequest, ctx: AppContext = Depends(get_context)
) -> CountResponse:
    count = await ctx.flashcards.import_json(body.payload, clear_existing=body.clear_existing)
    return CountResponse(count=count)


@router.delete("/by-page/{page}", response_model=CountResponse)
async def delete_page_flashcards(page: int, ctx: AppContext = Depends(get_context)) -> CountResponse:
    return CountResponse(count=await ctx.flashcards.delete_by_page(page))


@router.delete("/by-verse/{surah}/{ayah}", response_model=CountResponse)
async def delete_verse_flashcards(
    surah: int, ayah: int, ctx: AppContext = Depends(get_context)
) -> CountResponse:
    return CountResponse(count=await ctx.flashcards.delete_by_verse(surah, ayah))


@router.get("/{card_id}", response_model=FlashcardData)
async def get_flashcard(card_id: str, ctx: AppContext = Depends(get_context)) -> FlashcardData:
    card = await ctx.flashcards.read(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return FlashcardData.model_validate(card)


@router.put("/{card_id}", response_model=FlashcardData)
async def update_flashcard(
    card_id: str, body: FlashcardUpdate, ctx: AppContext = Depends(get_context)
) -> FlashcardData:
    card = await ctx.flashcards.read(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Flashcard not found")

    changes = body.model_dump(exclude_unset=True)
    if "metadata" in changes:
        card.meta = changes.pop("metadata")
    for name, value in changes.items():
        setattr(card, name, value)

    return FlashcardData.model_validate(await ctx.flashcards.update(card))


@router.delete("/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flashcard(card_id: str, ctx: AppContext = Depends(get_context)) -> None:
    if not await ctx.flashcards.delete(card_id):
        raise HTTPException(status_code=404, detail="Flashcard not found")


@router.post("/{card_id}/review", response_model=FlashcardData)
async def review_flashcard(
    card_id: str, body: ReviewRequest, ctx: AppContext = Depends(get_context)
) -> FlashcardData:
    """Apply a rating and return the card with its next due date."""
    card = await ctx.flashcards.record_review(card_id, body.rating)
    return FlashcardData.model_validate(card)
