# src/sv_app/modules/selection/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CountryStatus(str, Enum):
    normal = "normal"
    unidentified = "unidentified"
    no_data = "no-data"


@dataclass(frozen=True)
class YearSummary:
    year: int
    images: int
    videos: int
    downloaded_count: int = 0
    failed_count: int = 0
    completed: int = 0  # files archived in the current session
    size: int = 0  # bytes archived in the current session

    @property
    def total(self) -> int:
        return self.images + self.videos


@dataclass(frozen=True)
class MonthSummary:
    month: int  # 1-12
    images: int
    videos: int
    downloaded_count: int = 0
    failed_count: int = 0

    @property
    def total(self) -> int:
        return self.images + self.videos


@dataclass(frozen=True)
class CountrySummary:
    country: str
    total: int
    status: CountryStatus
