# src/sv_app/core/config.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MiB = 1024 * 1024


class Settings(BaseSettings):
    """
    App settings (12-factor). Override via env vars, e.g.
      SV_OUTPUT_ROOT=/data/out  SV_LARGE_SELECTION_THRESHOLD=200
    """

    # App
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Roots
    OUTPUT_ROOT: Path = Field(default_factory=lambda: Path("./output").resolve())
    HISTORY_FILE: Path | None = None  # default: <OUTPUT_ROOT>/.sv_history.json

    # Batching / workers
    LARGE_SELECTION_THRESHOLD: int = Field(500, gt=0)
    CONCURRENCY: int = Field(5, gt=0)

    # Retrieval
    FETCH_MAX_ATTEMPTS: int = Field(3, gt=0)
    FETCH_RETRY_DELAY: float = 2.0  # seconds, multiplied by the attempt number
    FETCH_TIMEOUT: float = 15.0

    # Imaging / archive
    MERGE_JPEG_QUALITY: int = Field(98, ge=1, le=100)
    ZIP_COMPRESSLEVEL: int = Field(6, ge=0, le=9)

    # Country boundaries (a local file wins over the URL)
    BOUNDARIES_URL: str = (
        "https://raw.githubusercontent.com/johan/world.geo.json/master/countries.geo.json"
    )
    BOUNDARIES_PATH: Path | None = None

    # Memory budget warnings (bytes)
    SOFT_MEMORY_LIMIT: int = 400 * MiB
    HARD_MEMORY_LIMIT: int = 600 * MiB
    MAX_SINGLE_FILE_SIZE: int = 100 * MiB

    model_config = SettingsConfigDict(
        env_prefix="SV_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("OUTPUT_ROOT")
    @classmethod
    def _ensure_dirs(cls, p: Path) -> Path:
        p.mkdir(parents=True, exist_ok=True)
        return p

    @property
    def history_path(self) -> Path:
        return self.HISTORY_FILE or (self.OUTPUT_ROOT / ".sv_history.json")

    def resolve_batch_size(self, override: int | None = None) -> int:
        """A positive runtime override wins over the configured threshold."""
        if override is not None and override > 0:
            return override
        return self.LARGE_SELECTION_THRESHOLD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    FastAPI-friendly cached getter. Use Depends(get_settings) where needed.
    """
    return Settings()
