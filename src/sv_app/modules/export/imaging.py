# src/sv_app/modules/export/imaging.py
from __future__ import annotations

import io
import math
from datetime import datetime, timezone

import piexif
from PIL import Image, ImageOps

try:
    from pillow_heif import register_heif_opener

    register_heif_opener()
    _HEIF_OK = True
except Exception:
    _HEIF_OK = False

from sv_app.core.logging import get_logger
from sv_app.core.media_types import HEIC, JPEG, sniff

from .schemas import AssetDescriptor

logger = get_logger(__name__)

MAX_IMAGE_DIMENSION = 4096  # warn above this; compositing holds two RGBA copies
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"
_SCENE_TYPE = 41729

Rational = tuple[int, int]


# ---- decoding ----------------------------------------------------------------


def is_decodable(data: bytes | None) -> bool:
    """True when Pillow can fully decode the payload as an image."""
    if not data:
        return False
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
        return True
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError):
        logger.warning("Payload of %d bytes could not be decoded as an image", len(data))
        return False


# ---- overlay merge -----------------------------------------------------------


def merge_overlay(primary: bytes, overlay: bytes, quality: int = 98) -> bytes:
    """
    Draw `overlay` stretched to the primary's size on top of the primary and
    re-encode as JPEG. Raises on undecodable input; callers fall back.
    """
    if not _HEIF_OK and HEIC in (sniff(primary), sniff(overlay)):
        raise OSError("HEIF support unavailable (pillow-heif not installed)")
    with Image.open(io.BytesIO(primary)) as base_im, Image.open(
        io.BytesIO(overlay)
    ) as over_im:
        base = ImageOps.exif_transpose(base_im)
        width, height = base.size
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            logger.warning(
                "Image dimensions (%dx%d) exceed safe limits, proceeding anyway",
                width,
                height,
            )
        canvas = base.convert("RGBA")
        layer = over_im.convert("RGBA").resize(canvas.size, Image.Resampling.LANCZOS)
        composed = Image.alpha_composite(canvas, layer).convert("RGB")

    out = io.BytesIO()
    composed.save(out, format="JPEG", quality=quality)
    return out.getvalue()


# ---- EXIF --------------------------------------------------------------------


def deg_to_dms(deg: float) -> tuple[Rational, Rational, Rational]:
    """Absolute decimal degrees as EXIF rationals, seconds in 1/100."""
    d = math.floor(deg)
    minutes_f = (deg - d) * 60
    m = math.floor(minutes_f)
    s = round((minutes_f - m) * 60 * 100)
    return (d, 1), (m, 1), (s, 100)


def format_exif_date(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(EXIF_DATE_FORMAT)


def embed_gps(data: bytes, latitude: float, longitude: float, taken: datetime) -> bytes:
    """
    Insert GPS position and DateTimeOriginal into a JPEG's APP1 segment
    without re-encoding the image data.
    """
    exif = piexif.load(data)
    exif.setdefault("Exif", {})
    exif.setdefault("GPS", {})

    # piexif.load returns SceneType as int but dump expects bytes
    scene = exif["Exif"].get(_SCENE_TYPE)
    if isinstance(scene, int):
        exif["Exif"][_SCENE_TYPE] = bytes([scene])

    exif["Exif"][piexif.ExifIFD.DateTimeOriginal] = format_exif_date(taken)
    exif["GPS"][piexif.GPSIFD.GPSLatitudeRef] = "S" if latitude < 0 else "N"
    exif["GPS"][piexif.GPSIFD.GPSLatitude] = deg_to_dms(abs(latitude))
    exif["GPS"][piexif.GPSIFD.GPSLongitudeRef] = "W" if longitude < 0 else "E"
    exif["GPS"][piexif.GPSIFD.GPSLongitude] = deg_to_dms(abs(longitude))

    out = io.BytesIO()
    piexif.insert(piexif.dump(exif), data, out)
    return out.getvalue()


def geotag(asset: AssetDescriptor, data: bytes) -> tuple[bytes, bool]:
    """
    Best-effort geotagging of JPEG images. Returns (bytes, embedded); on any
    failure or a corrupt result the original bytes come back untouched.
    """
    if not asset.is_image or not asset.latitude or not asset.longitude:
        return data, False
    if sniff(data) != JPEG:
        return data, False

    try:
        tagged = embed_gps(data, asset.latitude, asset.longitude, asset.captured_at)
    except Exception as e:
        logger.error(
            "Could not embed EXIF data in %s, proceeding without metadata: %s",
            asset.filename,
            e,
        )
        return data, False

    if not is_decodable(tagged):
        logger.warning(
            "EXIF embedding for %s produced a corrupt image, keeping the original file",
            asset.filename,
        )
        return data, False
    return tagged, True
