# src/sv_app/core/media_types.py
from __future__ import annotations

from typing import NamedTuple

IMAGE_EXTS: set[str] = {
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".heic",
    ".heif",
}

VIDEO_EXTS: set[str] = {
    ".mp4",
    ".mov",
    ".m4v",
}

ZIP_MAGIC = b"PK\x03\x04"
JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG"
GIF_MAGIC = b"GIF8"
HEIC_BRANDS = {b"heic", b"heix", b"mif1", b"msf1"}


class FileType(NamedTuple):
    ext: str
    mime: str


JPEG = FileType("jpg", "image/jpeg")
PNG = FileType("png", "image/png")
GIF = FileType("gif", "image/gif")
HEIC = FileType("heic", "image/heic")
MP4 = FileType("mp4", "video/mp4")


def is_zip(data: bytes) -> bool:
    return len(data) >= 4 and data[:4] == ZIP_MAGIC


def is_json_content_type(content_type: str | None) -> bool:
    return bool(content_type) and "application/json" in content_type.lower()


def sniff(data: bytes) -> FileType | None:
    """Identify a payload from its leading signature bytes."""
    head = data[:12]
    if head[:3] == JPEG_MAGIC:
        return JPEG
    if head[:4] == PNG_MAGIC:
        return PNG
    if head[:4] == GIF_MAGIC:
        return GIF
    # ISO base media: "ftyp" box at offset 4, major brand at 8..12
    if len(head) >= 12 and head[4:8] == b"ftyp":
        return HEIC if head[8:12] in HEIC_BRANDS else MP4
    return None
