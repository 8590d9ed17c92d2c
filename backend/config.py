from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Hifz Mushaf"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'hifz.db'}"
    quran_api_base_url: str = "https://api.quran.com/api/v4"
    quran_api_timeout_seconds: float = 15.0
    verse_cache_ttl_days: int = 365
    default_edition: str = "madani-15-tajweed"
    target_retention: float = 0.9
    maximum_interval_days: int = 365
    learning_steps_minutes: list[float] = [1, 10]
    relearning_steps_minutes: list[float] = [10]
    command_history_size: int = 50
    mapper_cache_size: int = 1  # Page maps kept; 1 keeps only the current page
    timestamp_cache_size: int = 64  # Ayahs with cached word timings
    max_new_cards_per_session: int = 10
    max_reviews_per_session: int = 20
    debug: bool = False

    model_config = {"env_prefix": "HIFZ_", "env_file": ".env"}


settings = Settings()
