"""API routes for page annotations and their undo history."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from backend.api.deps import get_context
from backend.api.schemas import (
    AnnotationCreate,
    AnnotationStatsResponse,
    AnnotationUpdate,
    CountResponse,
    HistoryResponse,
    ImportRequest,
)
from backend.context import AppContext
from backend.models.annotation import AnnotationType
from backend.stores.annotations import (
    AddAnnotationCommand,
    AnnotationData,
    AnnotationFilter,
    DeleteAnnotationCommand,
)

router = APIRouter(prefix="/api", tags=["annotations"])


def _history(ctx: AppContext) -> HistoryResponse:
    return HistoryResponse(
        can_undo=ctx.commands.can_undo(),
        can_redo=ctx.commands.can_redo(),
        undo=ctx.commands.undo_history(),
        redo=ctx.commands.redo_history(),
    )


@router.post(
    "/annotations", response_model=AnnotationData, status_code=status.HTTP_201_CREATED
)
async def create_annotation(
    body: AnnotationCreate, ctx: AppContext = Depends(get_context)
) -> AnnotationData:
    """Add an annotation through the undo history."""
    command = AddAnnotationCommand(
        ctx.annotations,
        body.type,
        body.page_number,
        body.data,
        verse_key=body.verse_key,
        tags=body.tags,
        metadata=body.metadata,
    )
    await ctx.commands.execute(command)
    return command.snapshot


@router.get("/annotations", response_model=list[AnnotationData])
async def list_annotations(
    page_number: int | None = Query(default=None, ge=1),
    verse_key: str | None = None,
    type: AnnotationType | None = None,
    tags: list[str] | None = Query(default=None),
    ctx: AppContext = Depends(get_context),
) -> list[AnnotationData]:
    query = AnnotationFilter(page_number=page_number, verse_key=verse_key, type=type, tags=tags)
    annotations = await ctx.annotations.get_annotations(query)
    return [AnnotationData.model_validate(a) for a in annotations]


@router.get("/annotations/stats", response_model=AnnotationStatsResponse)
async def annotation_stats(ctx: AppContext = Depends(get_context)) -> AnnotationStatsResponse:
    return AnnotationStatsResponse(**await ctx.annotations.get_stats())


@router.get("/annotations/export")
async def export_annotations(ctx: AppContext = Depends(get_context)) -> Response:
    return Response(
        content=await ctx.annotations.export_annotations(), media_type="application/json"
    )


@router.post("/annotations/import", response_model=CountResponse)
async def import_annotations(
    body: ImportRequest, ctx: AppContext = Depends(get_context)
) -> CountResponse:
    count = await ctx.annotations.import_annotations(
        body.payload, clear_existing=body.clear_existing
    )
    return CountResponse(count=count)


@router.delete("/annotations/pages/{page_number}", response_model=CountResponse)
async def delete_page_annotations(
    page_number: int, ctx: AppContext = Depends(get_context)
) -> CountResponse:
    return CountResponse(count=await ctx.annotations.delete_page_annotations(page_number))


@router.delete("/annotations/verses/{verse_key}", response_model=CountResponse)
async def delete_verse_annotations(
    verse_key: str, ctx: AppContext = Depends(get_context)
) -> CountResponse:
    return CountResponse(count=await ctx.annotations.delete_verse_annotations(verse_key))


@router.get("/annotations/{annotation_id}", response_model=AnnotationData)
async def get_annotation(
    annotation_id: str, ctx: AppContext = Depends(get_context)
) -> AnnotationData:
    annotation = await ctx.annotations.get_annotation(annotation_id)
    if annotation is None:
        raise HTTPException(status_code=404, detail="Annotation not found")
    return AnnotationData.model_validate(annotation)


@router.patch("/annotations/{annotation_id}", response_model=AnnotationData)
async def update_annotation(
    annotation_id: str, body: AnnotationUpdate, ctx: AppContext = Depends(get_context)
) -> AnnotationData:
    annotation = await ctx.annotations.update_annotation(
        annotation_id, **body.model_dump(exclude_unset=True)
    )
    return AnnotationData.model_validate(annotation)


@router.delete("/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_annotation(annotation_id: str, ctx: AppContext = Depends(get_context)) -> None:
    """Delete an annotation through the undo history."""
    await ctx.commands.execute(DeleteAnnotationCommand(ctx.annotations, annotation_id))


@router.get("/history", response_model=HistoryResponse)
async def get_history(ctx: AppContext = Depends(get_context)) -> HistoryResponse:
    return _history(ctx)


@router.post("/history/undo", response_model=HistoryResponse)
async def undo(ctx: AppContext = Depends(get_context)) -> HistoryResponse:
    if not await ctx.commands.undo():
        raise HTTPException(status_code=409, detail="Nothing to undo")
    return _history(ctx)


@router.post("/history/redo", response_model=HistoryResponse)
async def redo(ctx: AppContext = Depends(get_context)) -> HistoryResponse:
    if not await ctx.commands.redo():
        raise HTTPException(status_code=409, detail="Nothing to redo")
    return _history(ctx)
