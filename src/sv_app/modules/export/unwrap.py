# src/sv_app/modules/export/unwrap.py
from __future__ import annotations

import io
import json
import zipfile
import zlib
from dataclasses import dataclass

from sv_app.core.errors import MalformedManifest, MissingContentError
from sv_app.core.logging import get_logger

from .schemas import MediaKind

logger = get_logger(__name__)

MAIN_SUFFIXES = {
    MediaKind.image: ("-main.jpg", "-main.jpeg"),
    MediaKind.video: ("-main.mp4", "-main.mov"),
}
OVERLAY_SUFFIX = "-overlay.png"

MAIN_MEDIA_TYPES = {"PHOTO", "VIDEO"}
OVERLAY_MEDIA_TYPE = "PHOTO_OVERLAY"


@dataclass(frozen=True)
class ZipContents:
    primary: bytes
    overlay: bytes | None = None


@dataclass(frozen=True)
class Manifest:
    """Pointers carried by a JSON indirection response."""

    main_uri: str
    overlay_uri: str | None = None

    @classmethod
    def parse(cls, raw: bytes) -> Manifest:
        try:
            doc = json.loads(raw)
        except ValueError as e:
            raise MalformedManifest(f"Manifest is not valid JSON: {e}") from e
        if not isinstance(doc, dict):
            raise MalformedManifest("Manifest root is not an object")

        media = doc.get("Media") or doc.get("media") or []
        if not isinstance(media, list):
            raise MalformedManifest("Manifest media list has the wrong shape")

        entries = [m for m in media if isinstance(m, dict)]
        main = next(
            (m for m in entries if m.get("Media Type") in MAIN_MEDIA_TYPES), None
        )
        if not main or not isinstance(main.get("URI"), str) or not main["URI"]:
            raise MalformedManifest(
                "JSON manifest does not contain a valid main media URI."
            )
        overlay = next(
            (m for m in entries if m.get("Media Type") == OVERLAY_MEDIA_TYPE), None
        )
        overlay_uri = overlay.get("URI") if overlay else None
        return cls(
            main_uri=main["URI"],
            overlay_uri=overlay_uri if isinstance(overlay_uri, str) and overlay_uri else None,
        )


def _find(zf: zipfile.ZipFile, suffixes: tuple[str, ...]) -> str | None:
    for info in zf.infolist():
        if not info.is_dir() and info.filename.lower().endswith(suffixes):
            return info.filename
    return None


def extract_zip(data: bytes, kind: MediaKind, label: str = "") -> ZipContents:
    """
    Pull the '-main' media and the optional '-overlay.png' out of a ZIP
    payload. A missing main entry is fatal; overlay problems are not.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise MissingContentError(f"Unreadable ZIP container: {e}") from e

    with zf:
        main_name = _find(zf, MAIN_SUFFIXES[kind])
        if not main_name:
            raise MissingContentError("ZIP archive did not contain a main media file.")
        primary = zf.read(main_name)

        overlay: bytes | None = None
        try:
            overlay_name = _find(zf, (OVERLAY_SUFFIX,))
            if overlay_name:
                overlay = zf.read(overlay_name)
        except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError) as e:
            logger.warning(
                "Could not extract overlay for %s from ZIP, proceeding without it: %s",
                label,
                e,
            )
            overlay = None

    return ZipContents(primary=primary, overlay=overlay)
