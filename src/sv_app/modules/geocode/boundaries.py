# src/sv_app/modules/geocode/boundaries.py
"""
Offline country lookup.

Boundaries come from a GeoJSON FeatureCollection (Polygon / MultiPolygon
features with a `name` property). The collection is fetched or read once per
classifier and then only read, so a single instance can be shared by every
worker thread.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Sequence
from functools import lru_cache
from pathlib import Path

import requests

from sv_app.core.config import get_settings
from sv_app.core.errors import BoundaryDataError
from sv_app.core.logging import get_logger

from .schemas import CountryBoundary, Polygon, Ring

logger = get_logger(__name__)

__all__ = [
    "BoundaryClassifier",
    "get_classifier",
    "parse_feature_collection",
    "point_in_polygon",
    "point_in_ring",
]


# ---- geometry ----------------------------------------------------------------


def point_in_ring(x: float, y: float, ring: Sequence[Sequence[float]]) -> bool:
    """Ray casting: odd number of edge crossings to the right means inside."""
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def point_in_polygon(x: float, y: float, polygon: Polygon) -> bool:
    inside = False
    for idx, ring in enumerate(polygon):
        if not point_in_ring(x, y, ring):
            continue
        if idx == 0:
            inside = True
        else:
            # inside a hole
            return False
    return inside


# ---- parsing -----------------------------------------------------------------


def _ring(coords) -> Ring:
    return tuple((float(pt[0]), float(pt[1])) for pt in coords)


def _polygon(coords) -> Polygon:
    return tuple(_ring(r) for r in coords)


def parse_feature_collection(data: dict) -> list[CountryBoundary]:
    """Turn GeoJSON into boundaries. Unsupported geometry types never match."""
    try:
        features = data["features"]
    except (KeyError, TypeError) as e:
        raise BoundaryDataError("Boundary data is not a FeatureCollection") from e

    boundaries: list[CountryBoundary] = []
    try:
        for feat in features:
            name = (feat.get("properties") or {}).get("name")
            geometry = feat.get("geometry") or {}
            gtype = geometry.get("type")
            coords = geometry.get("coordinates") or []
            if gtype == "Polygon":
                polygons = (_polygon(coords),)
            elif gtype == "MultiPolygon":
                polygons = tuple(_polygon(p) for p in coords)
            else:
                polygons = ()
            boundaries.append(CountryBoundary(name=name, polygons=polygons))
    except (AttributeError, IndexError, TypeError, ValueError) as e:
        raise BoundaryDataError(f"Malformed boundary geometry: {e}") from e
    return boundaries


# ---- loaders -----------------------------------------------------------------


def load_from_path(path: Path) -> dict:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise BoundaryDataError(f"Failed to read boundary data from {path}: {e}") from e


def load_from_url(url: str, timeout: float = 30.0) -> dict:
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as e:
        raise BoundaryDataError(f"Failed to load country boundary data: {e}") from e


class BoundaryClassifier:
    """Point-in-polygon country resolver with a lazily loaded dataset."""

    def __init__(self, loader: Callable[[], dict]) -> None:
        self._loader = loader
        self._boundaries: list[CountryBoundary] | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls) -> BoundaryClassifier:
        s = get_settings()
        if s.BOUNDARIES_PATH is not None:
            return cls(lambda: load_from_path(s.BOUNDARIES_PATH))
        return cls(lambda: load_from_url(s.BOUNDARIES_URL))

    @classmethod
    def from_geojson(cls, data: dict) -> BoundaryClassifier:
        return cls(lambda: data)

    @property
    def loaded(self) -> bool:
        return self._boundaries is not None

    def load(self) -> list[CountryBoundary]:
        """Load and parse once. Failures are not cached, a later call retries."""
        if self._boundaries is not None:
            return self._boundaries
        with self._lock:
            if self._boundaries is None:
                logger.info("Loading country boundary data...")
                boundaries = parse_feature_collection(self._loader())
                logger.info("Loaded %d country boundaries", len(boundaries))
                self._boundaries = boundaries
        return self._boundaries

    def classify(self, longitude: float, latitude: float) -> str | None:
        for boundary in self.load():
            for polygon in boundary.polygons:
                if point_in_polygon(longitude, latitude, polygon):
                    return boundary.name
        return None


@lru_cache(maxsize=1)
def get_classifier() -> BoundaryClassifier:
    """Process-wide classifier; the dataset is shared read-only."""
    return BoundaryClassifier.from_settings()
