"""
Root conftest.py: shared factories, fakes and settings.

Nothing here touches the network: HTTP goes through `FakeHttp`, retry sleeps
are disabled through settings, and the country dataset is a tiny in-memory
FeatureCollection.
"""

from __future__ import annotations

import io
import itertools
from datetime import datetime, timezone

import pytest
from PIL import Image

from sv_app.core.config import Settings
from sv_app.core.session import SessionContext
from sv_app.modules.export.fetch import Fetcher
from sv_app.modules.export.schemas import AssetDescriptor, MediaKind
from sv_app.modules.geocode.boundaries import BoundaryClassifier


# ---- HTTP fakes --------------------------------------------------------------


class FakeResponse:
    """Just enough of requests.Response for the fetcher."""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: dict | None = None,
        text: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.text = text if text is not None else content.decode("latin-1")
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeHttp:
    """
    Scripted stand-in for requests.Session. Each (method, url) route holds a
    list of responses or exceptions consumed in order; the last one repeats.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list] = {}
        self.calls: list[tuple[str, str, object]] = []

    def add(self, method: str, url: str, *outcomes) -> FakeHttp:
        self.routes.setdefault((method, url), []).extend(outcomes)
        return self

    def count(self, method: str, url: str) -> int:
        return sum(1 for m, u, _ in self.calls if m == method and u == url)

    def _next(self, method: str, url: str, body=None):
        self.calls.append((method, url, body))
        queue = self.routes.get((method, url))
        if not queue:
            return FakeResponse(404)
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def get(self, url, **kwargs):
        return self._next("GET", url)

    def post(self, url, data=None, **kwargs):
        return self._next("POST", url, data)


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def fetcher(http):
    return Fetcher(http=http, max_attempts=3, retry_delay=0.0, timeout=5.0, sleep=lambda s: None)


# ---- settings / session ------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    return Settings(
        OUTPUT_ROOT=tmp_path / "out",
        HISTORY_FILE=tmp_path / "history.json",
        FETCH_RETRY_DELAY=0.0,
        CONCURRENCY=3,
    )


@pytest.fixture
def session():
    return SessionContext()


# ---- assets ------------------------------------------------------------------


@pytest.fixture
def make_asset():
    """Factory fixture: AssetDescriptor with sensible defaults and unique ids."""
    counter = itertools.count(1)

    def _make(**overrides) -> AssetDescriptor:
        n = next(counter)
        asset_id = overrides.pop("id", f"{n:040x}")
        kind = overrides.pop("kind", MediaKind.image)
        ext = "jpg" if kind == MediaKind.image else "mp4"
        fields = {
            "id": asset_id,
            "captured_at": datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
            "kind": kind,
            "latitude": 48.8566,
            "longitude": 2.3522,
            "url": f"https://cdn.example.com/media/{asset_id}",
            "is_get": True,
            "filename": f"asset_{n}.{ext}",
        }
        fields.update(overrides)
        return AssetDescriptor(**fields)

    return _make


# ---- image bytes -------------------------------------------------------------


@pytest.fixture
def make_jpeg():
    def _make(size=(16, 12), color=(200, 40, 40)) -> bytes:
        buf = io.BytesIO()
        Image.new("RGB", size, color).save(buf, format="JPEG", quality=90)
        return buf.getvalue()

    return _make


@pytest.fixture
def make_png():
    def _make(size=(4, 4), color=(0, 0, 255, 128)) -> bytes:
        buf = io.BytesIO()
        Image.new("RGBA", size, color).save(buf, format="PNG")
        return buf.getvalue()

    return _make


# ---- boundaries --------------------------------------------------------------


def _rect(x0, y0, x1, y1):
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]


@pytest.fixture
def boundary_geojson():
    """Squareland (with a lake hole), Farland as a two-part MultiPolygon."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "Squareland"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [_rect(0, 0, 10, 10), _rect(4, 4, 6, 6)],
                },
            },
            {
                "type": "Feature",
                "properties": {"name": "Farland"},
                "geometry": {
                    "type": "MultiPolygon",
                    "coordinates": [[_rect(20, 20, 30, 30)], [_rect(-30, -30, -20, -20)]],
                },
            },
            {
                "type": "Feature",
                "properties": {"name": "Pointland"},
                "geometry": {"type": "Point", "coordinates": [50, 50]},
            },
        ],
    }


@pytest.fixture
def classifier(boundary_geojson):
    return BoundaryClassifier.from_geojson(boundary_geojson)
