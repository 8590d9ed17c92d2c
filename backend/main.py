"""FastAPI application entry point and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import text

from backend.api.annotations_router import router as annotations_router
from backend.api.flashcards_router import router as flashcards_router
from backend.api.pages_router import router as pages_router
from backend.config import settings
from backend.context import AppContext
from backend.database import async_session, engine
from backend.errors import (
    CacheUnavailableError,
    ConfigurationError,
    DuplicateKeyError,
    FetchError,
    HifzError,
    NotFoundError,
    PageDataError,
    QuranRangeError,
    RepositoryError,
)
from backend.models import Base

logger = logging.getLogger(__name__)

# Most specific first
_STATUS_BY_ERROR: list[tuple[type[HifzError], int]] = [
    (QuranRangeError, 400),
    (PageDataError, 404),
    (NotFoundError, 404),
    (DuplicateKeyError, 409),
    (FetchError, 502),
    (CacheUnavailableError, 503),
    (RepositoryError, 503),
    (ConfigurationError, 500),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize database and engines on startup and clean up on shutdown."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.context = AppContext.create(async_session, settings)
    yield
    await app.state.context.close()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Mushaf page reconstruction, annotations and Hifz flashcard review",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pages_router)
app.include_router(flashcards_router)
app.include_router(annotations_router)


def status_for(error: HifzError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


@app.exception_handler(HifzError)
async def handle_hifz_error(request: Request, exc: HifzError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s on %s: %s %s", type(exc).__name__, request.url.path, exc, exc.context)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def handle_payload_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400, content={"detail": f"Invalid payload: {exc.error_count()} errors"}
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Check database connectivity and return status."""
    async with async_session() as session:
        await session.execute(text("SELECT 1"))
    return {"status": "ok"}
