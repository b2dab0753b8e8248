# src/sv_app/modules/parse/service.py
"""
Turn a memories export (the `memories_history.html` page, or the export ZIP
that contains it) into AssetDescriptors plus the signed-link expiry.
"""

from __future__ import annotations

import hashlib
import re
import zipfile
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup

from sv_app.core.errors import ParseError
from sv_app.core.logging import get_logger
from sv_app.core.progress import ProgressReporter
from sv_app.modules.export.schemas import AssetDescriptor, MediaKind, ParseResult
from sv_app.modules.geocode.schemas import PENDING_GEOCODING

logger = get_logger(__name__)

HISTORY_FILENAME = "memories_history.html"
LINK_LIFETIME = timedelta(days=7)
SOON_WINDOW = timedelta(hours=24)

ONCLICK_RE = re.compile(r"downloadMemories\('([^']*)',\s*this,\s*(true|false)\)")
LOCATION_RE = re.compile(r"(-?\d+(?:\.\d+)?),\s*(-?\d+(?:\.\d+)?)")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_EXT_BY_KIND = {MediaKind.image: "jpg", MediaKind.video: "mp4"}


class ExpiryStatus(str, Enum):
    unknown = "unknown"
    expired = "expired"
    soon = "soon"
    valid = "valid"


# ---- input files -------------------------------------------------------------


def read_export(path: Path) -> str:
    """Return the history page HTML from an .html file or an export .zip."""
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in {".html", ".htm"}:
        return path.read_bytes().decode("utf-8", errors="replace")

    if suffix == ".zip":
        try:
            with zipfile.ZipFile(path) as zf:
                name = next(
                    (n for n in zf.namelist() if n.endswith(HISTORY_FILENAME)), None
                )
                if name is None:
                    raise ParseError("ERROR_NO_HTML_IN_ZIP")
                return zf.read(name).decode("utf-8", errors="replace")
        except zipfile.BadZipFile as e:
            raise ParseError("ERROR_INVALID_FILE", f"Not a readable ZIP: {e}") from e

    raise ParseError("ERROR_INVALID_FILE_TYPE", f"Unsupported export file: {path.name}")


# ---- rows --------------------------------------------------------------------


def _hash_url(url: str) -> str:
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


def _parse_date(text: str) -> datetime:
    return datetime.strptime(text.replace(" UTC", "").strip(), DATE_FORMAT).replace(
        tzinfo=timezone.utc
    )


def _parse_location(text: str) -> tuple[float, float]:
    m = LOCATION_RE.search(text)
    if not m:
        return 0.0, 0.0
    lat, lng = float(m.group(1)), float(m.group(2))
    return (
        lat if -90 <= lat <= 90 else 0.0,
        lng if -180 <= lng <= 180 else 0.0,
    )


def _creation_time(url: str) -> datetime | None:
    """The `ts` query parameter (epoch ms) of a signed GET link."""
    values = parse_qs(urlsplit(url).query).get("ts")
    if not values:
        return None
    try:
        return datetime.fromtimestamp(int(values[0]) / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def build_filename(captured_at: datetime, kind: MediaKind, asset_id: str) -> str:
    stamp = captured_at.astimezone(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    return f"{stamp}_{kind.value}_{asset_id[:8]}.{_EXT_BY_KIND[kind]}"


def parse_html(html: str, reporter: ProgressReporter | None = None) -> ParseResult:
    soup = BeautifulSoup(html, "html.parser")
    rows = soup.select("tbody tr")
    assets: list[AssetDescriptor] = []
    latest: datetime | None = None

    if reporter:
        reporter.start("parse", total=len(rows), text="Reading export…")

    for row in rows:
        if reporter:
            reporter.update("parse", 1)
        cells = row.find_all("td")
        if len(cells) < 4:
            continue
        link = cells[3].find("a")
        if link is None:
            continue
        m = ONCLICK_RE.search(link.get("onclick") or "")
        if not m:
            continue

        url, is_get = m.group(1), m.group(2) == "true"
        date_text = cells[0].get_text(strip=True)
        type_text = cells[1].get_text(strip=True)
        if not url or not date_text or type_text not in {k.value for k in MediaKind}:
            continue

        try:
            captured_at = _parse_date(date_text)
        except ValueError as e:
            logger.warning("Skipping memory row with unreadable date %r: %s", date_text, e)
            continue

        if is_get:
            created = _creation_time(url)
            if created and (latest is None or created > latest):
                latest = created

        kind = MediaKind(type_text)
        lat, lng = _parse_location(cells[2].get_text(strip=True))
        asset_id = _hash_url(url)
        assets.append(
            AssetDescriptor(
                id=asset_id,
                captured_at=captured_at,
                kind=kind,
                latitude=lat,
                longitude=lng,
                url=url,
                is_get=is_get,
                filename=build_filename(captured_at, kind, asset_id),
                country=PENDING_GEOCODING,
            )
        )

    if reporter:
        reporter.end("parse")

    expires_at = latest + LINK_LIFETIME if latest else None
    logger.info("Parsed %d memories (links expire: %s)", len(assets), expires_at)
    return ParseResult(assets=assets, expires_at=expires_at)


def parse_export(path: Path, reporter: ProgressReporter | None = None) -> ParseResult:
    html = read_export(path)
    if not html:
        raise ParseError("ERROR_INVALID_FILE")
    result = parse_html(html, reporter=reporter)
    if not result.assets:
        raise ParseError("ERROR_NO_MEMORIES_FOUND")
    return result


def expiry_status(expires_at: datetime | None, now: datetime | None = None) -> ExpiryStatus:
    if expires_at is None:
        return ExpiryStatus.unknown
    now = now or datetime.now(timezone.utc)
    if expires_at < now:
        return ExpiryStatus.expired
    if expires_at < now + SOON_WINDOW:
        return ExpiryStatus.soon
    return ExpiryStatus.valid
