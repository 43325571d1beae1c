from datetime import UTC, datetime
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Nexus Study"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'nexus_study.db'}"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Defaults copied onto a learner when it is first created
    learning_steps: list[float] = Field(default=[1, 10], min_length=1)  # minutes
    graduating_interval: float = Field(default=1.0, ge=0)  # days
    easy_bonus: float = Field(default=1.3, ge=1)
    leech_threshold: int = Field(default=8, ge=1)
    reaction_time_target_ms: int = 5000
    max_new_per_day: int = 20
    max_reviews_per_day: int = 100

    debug: bool = False

    model_config = {"env_prefix": "NEXUS_", "env_file": ".env"}


settings = Settings()
