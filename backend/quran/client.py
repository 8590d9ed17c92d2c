"""HTTP transport for the Quran.com v4 verse API."""

import logging
from typing import Any, Protocol

import httpx

from backend.config import settings
from backend.errors import FetchError

logger = logging.getLogger(__name__)

PAGE_WORD_FIELDS = ("text_uthmani", "line_number", "page_number", "position")
RICH_WORD_FIELDS = (
    "text_uthmani",
    "text_imlaei",
    "translation",
    "transliteration",
    "char_type_name",
    "line_number",
    "page_number",
    "position",
    "audio_url",
)


class VerseApiClient(Protocol):
    """The only remote operations the verse data source relies on."""

    async def fetch_page_verses(
        self, page: int, word_fields: tuple[str, ...] = PAGE_WORD_FIELDS
    ) -> list[dict[str, Any]]: ...

    async def fetch_verse(
        self, surah: int, ayah: int, word_fields: tuple[str, ...] | None = None
    ) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...


class QuranComClient:
    """Thin async client for ``api.quran.com``.

    Every transport or protocol failure is raised as ``FetchError``; no
    retries are attempted here, retry policy belongs to the caller.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client, optionally around an existing httpx client."""
        self.base_url = (base_url or settings.quran_api_base_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.quran_api_timeout_seconds
        )

    async def fetch_page_verses(
        self, page: int, word_fields: tuple[str, ...] = PAGE_WORD_FIELDS
    ) -> list[dict[str, Any]]:
        """Fetch every verse on a page, with word-level fields."""
        data = await self._get(
            f"/verses/by_page/{page}",
            {"words": "true", "word_fields": ",".join(word_fields)},
        )
        verses = data.get("verses")
        if not isinstance(verses, list):
            raise FetchError(f"Malformed response for page {page}", context={"page": page})
        return verses

    async def fetch_verse(
        self, surah: int, ayah: int, word_fields: tuple[str, ...] | None = None
    ) -> dict[str, Any]:
        """Fetch one verse by key, with word-level fields when requested."""
        params = {}
        if word_fields:
            params = {"words": "true", "word_fields": ",".join(word_fields)}
        data = await self._get(f"/verses/by_key/{surah}:{ayah}", params)
        verse = data.get("verse")
        if not isinstance(verse, dict):
            raise FetchError(
                f"Malformed response for verse {surah}:{ayah}",
                context={"surah": surah, "ayah": ayah},
            )
        return verse

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        logger.debug("GET %s %s", url, params)
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"Quran API request failed: {e.response.status_code} {e.response.reason_phrase}",
                context={"url": url},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(f"Failed to fetch from Quran API: {e}", context={"url": url}) from e
