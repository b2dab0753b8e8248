# src/sv_app/modules/geocode/schemas.py
from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

# Classification labels that are not country names
PENDING_GEOCODING = "PENDING_GEOCODING"
NO_LOCATION_DATA = "NO_LOCATION_DATA"
LOCATION_NOT_IDENTIFIED = "LOCATION_NOT_IDENTIFIED"
API_ERROR = "API_ERROR"


Ring = tuple[tuple[float, float], ...]
Polygon = tuple[Ring, ...]  # first ring is the exterior, the rest are holes


@dataclass(frozen=True)
class CountryBoundary:
    name: str
    polygons: tuple[Polygon, ...]


@dataclass(frozen=True)
class GeocodeUpdate:
    progress: int
    asset_id: str
    label: str


class ClassifyRequest(BaseModel):
    longitude: float = Field(..., ge=-180, le=180, example=2.3522)
    latitude: float = Field(..., ge=-90, le=90, example=48.8566)


class ClassifyResponse(BaseModel):
    longitude: float
    latitude: float
    country: str | None = Field(
        None,
        description="Name of the containing country, null when no boundary matches.",
        example="France",
    )
