# src/sv_app/modules/export/schemas.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from sv_app.modules.geocode.schemas import PENDING_GEOCODING

if TYPE_CHECKING:
    from sv_app.modules.archive.schemas import ArchiveResult


class MediaKind(str, Enum):
    image = "Image"
    video = "Video"


class AssetState(str, Enum):
    pending = "pending"
    processing = "processing"
    success = "success"
    error = "error"


class BatchStatus(str, Enum):
    planned = "planned"
    processing = "processing"
    success = "success"
    error = "error"


class SelectionMode(str, Enum):
    year = "year"
    country = "country"


@dataclass
class AssetDescriptor:
    """
    One exportable media item. Identity and retrieval fields come from the
    export parser; `country`, `state`, `progress` and `retry_count` are
    written by the geocoder and the retrieval pipeline.
    """

    id: str
    captured_at: datetime
    kind: MediaKind
    latitude: float
    longitude: float
    url: str
    is_get: bool
    filename: str
    overlay_url: str | None = None
    overlay_is_get: bool = True

    country: str = PENDING_GEOCODING
    state: AssetState | None = None
    progress: int = 0
    retry_count: int = 0

    @property
    def has_location(self) -> bool:
        return not (self.latitude == 0 and self.longitude == 0)

    @property
    def year(self) -> int:
        return self.captured_at.year

    @property
    def month(self) -> int:
        return self.captured_at.month

    @property
    def is_image(self) -> bool:
        return self.kind == MediaKind.image


@dataclass(frozen=True)
class SelectionContext:
    """
    What the user picked. `months` narrows a year selection, `years` narrows
    a country selection; either being set means a drill-down is active.
    """

    mode: SelectionMode = SelectionMode.year
    selection: int | str | None = None
    months: frozenset[int] | None = None
    years: frozenset[int] | None = None

    @property
    def years_for_country(self) -> bool:
        return self.years is not None and self.mode == SelectionMode.country

    @property
    def months_for_year(self) -> bool:
        return self.months is not None and self.mode == SelectionMode.year


@dataclass
class Batch:
    batch_num: int
    total_batches: int
    assets: tuple[AssetDescriptor, ...]
    archive_filename: str
    status: BatchStatus = BatchStatus.planned
    archive: ArchiveResult | None = None

    def __len__(self) -> int:
        return len(self.assets)

    def succeeded(self) -> list[AssetDescriptor]:
        return [a for a in self.assets if a.state == AssetState.success]

    def failed(self) -> list[AssetDescriptor]:
        return [a for a in self.assets if a.state == AssetState.error]


@dataclass
class ProcessingOutcome:
    """Per-asset result handed from a worker to the archiver."""

    asset_id: str
    ok: bool
    data: bytes | None = None
    reason: str | None = None
    size: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.size = len(self.data) if self.data else 0


@dataclass
class ParseResult:
    assets: list[AssetDescriptor]
    expires_at: datetime | None


# ---- API models --------------------------------------------------------------


class PlanRequest(BaseModel):
    count: int = Field(..., ge=0, description="Number of selected assets.", example=1200)
    batch_size: int | None = Field(
        None,
        gt=0,
        description="Runtime override for the large-selection threshold.",
        example=500,
    )
    mode: SelectionMode = Field(SelectionMode.year, example="year")
    selection: int | str | None = Field(None, example=2024)


class PlannedBatch(BaseModel):
    batch_num: int = Field(..., ge=1, example=1)
    total_batches: int = Field(..., ge=1, example=3)
    size: int = Field(..., ge=0, example=500)
    archive_filename: str = Field(..., example="memories-year-2024-part-1-of-3.zip")


class PlanResponse(BaseModel):
    batched: bool = Field(
        ..., description="True when the selection exceeds the threshold.", example=True
    )
    batch_size: int = Field(..., gt=0, example=500)
    batches: list[PlannedBatch] = Field(default_factory=list)
