"""API routes for rebuilt pages, word maps, editions and the verse cache."""

import logging

from fastapi import APIRouter, Depends, Query, status

from backend.api.deps import get_context
from backend.api.schemas import (
    CacheStatsResponse,
    EditionMatchRequest,
    EditionMatchResponse,
    EditionResponse,
    PageVerifyResponse,
    WordTimestampResponse,
)
from backend.context import AppContext
from backend.quran.editions import AyahRef, EditionFingerprint, SamplePage, default_registry
from backend.quran.rebuilder import MushafPage
from backend.quran.word_mapper import PageMap

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pages"])


def _edition_response(edition: EditionFingerprint) -> EditionResponse:
    return EditionResponse(
        id=edition.id,
        name=edition.name,
        lines_per_page=edition.lines_per_page,
        total_pages=edition.total_pages,
        has_tajweed=edition.has_tajweed,
    )


@router.get("/pages/{page_number}", response_model=MushafPage)
async def get_page(page_number: int, ctx: AppContext = Depends(get_context)) -> MushafPage:
    """Rebuild a page as ordered lines of words."""
    return await ctx.reconstructor.rebuild_page(page_number)


@router.get("/pages/{page_number}/map", response_model=PageMap)
async def get_page_map(page_number: int, ctx: AppContext = Depends(get_context)) -> PageMap:
    """Rebuild a page and return its approximate word layout."""
    page = await ctx.reconstructor.rebuild_page(page_number)
    return ctx.mapper_for(page_number).build_page_map(page)


@router.get("/pages/{page_number}/verify", response_model=PageVerifyResponse)
async def verify_page(
    page_number: int, ctx: AppContext = Depends(get_context)
) -> PageVerifyResponse:
    valid = await ctx.reconstructor.verify_page_boundaries(page_number)
    return PageVerifyResponse(
        page_number=page_number, edition_id=ctx.reconstructor.edition.id, valid=valid
    )


@router.get(
    "/verses/{surah}/{ayah}/timestamps", response_model=list[WordTimestampResponse]
)
async def get_word_timestamps(
    surah: int,
    ayah: int,
    page: int | None = Query(default=None, ge=1),
    ctx: AppContext = Depends(get_context),
) -> list[WordTimestampResponse]:
    """Estimated per-word timings for an ayah, with boxes when the page map is built."""
    timestamps = await ctx.word_timestamps_for(surah, ayah, page)
    return [WordTimestampResponse.model_validate(t, from_attributes=True) for t in timestamps]


@router.get("/editions", response_model=list[EditionResponse])
async def list_editions() -> list[EditionResponse]:
    return [_edition_response(edition) for edition in default_registry]


@router.post("/editions/match", response_model=EditionMatchResponse)
async def match_edition(body: EditionMatchRequest) -> EditionMatchResponse:
    """Identify the Mushaf edition an imported dataset belongs to."""
    samples = [
        SamplePage(
            page=s.page,
            first_ayah=AyahRef(s.first_ayah.surah, s.first_ayah.ayah),
            last_ayah=AyahRef(s.last_ayah.surah, s.last_ayah.ayah),
        )
        for s in body.samples
    ]
    edition = default_registry.match_edition(body.line_count, samples)
    return EditionMatchResponse(edition=_edition_response(edition) if edition else None)


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(ctx: AppContext = Depends(get_context)) -> CacheStatsResponse:
    return CacheStatsResponse(**await ctx.source.get_cache_stats())


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(ctx: AppContext = Depends(get_context)) -> None:
    await ctx.source.clear_cache()
    ctx.clear_mapper_cache()
    logger.info("Verse cache cleared")
