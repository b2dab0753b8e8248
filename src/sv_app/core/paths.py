from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sv_app.modules.export.schemas import AssetDescriptor, SelectionContext

# Characters rejected by at least one of Windows, macOS or Linux filesystems.
INVALID_CHARS_RE = re.compile(r'[\\/?%*:|"<>]')
WHITESPACE_RE = re.compile(r"\s+")

FALLBACK_SEGMENT = "Invalid_Name"
DEFAULT_ARCHIVE_NAME = "memories.zip"
UNKNOWN_COUNTRY = "COUNTRY_UNKNOWN"


def _identity(key: str) -> str:
    return key


def sanitize_segment(name: str) -> str:
    """
    Strip filesystem-illegal characters and collapse whitespace to '_'.
    Never returns an empty string.
    """
    name = INVALID_CHARS_RE.sub("", name)
    name = WHITESPACE_RE.sub("_", name).strip()
    return name or FALLBACK_SEGMENT


def _sanitize_for_archive_name(name: str) -> str:
    return WHITESPACE_RE.sub("-", INVALID_CHARS_RE.sub("", name))


def archive_path(
    asset: AssetDescriptor,
    context: SelectionContext,
    translate: Callable[[str], str] = _identity,
) -> str:
    """
    Build the in-archive path for one asset.

    - country drill-down:  <country>/<year>/<filename>
    - simple selection:    <selection>/<filename>
    - no selection:        <year>/<country>/<filename>
    """
    filename = sanitize_segment(asset.filename)
    selection = context.selection

    if context.years_for_country and isinstance(selection, str):
        country = sanitize_segment(translate(selection))
        return f"{country}/{asset.year}/{filename}"

    if selection is not None and selection != "":
        folder = sanitize_segment(translate(str(selection)))
        return f"{folder}/{filename}"

    country = sanitize_segment(translate(asset.country or UNKNOWN_COUNTRY))
    return f"{asset.year}/{country}/{filename}"


def archive_filename(
    context: SelectionContext,
    batch_num: int | None = None,
    total_batches: int | None = None,
    translate: Callable[[str], str] = _identity,
) -> str:
    """Output filename for a whole package, with a part suffix in batch mode."""
    if context.selection is None or context.selection == "":
        return DEFAULT_ARCHIVE_NAME

    selection = _sanitize_for_archive_name(translate(str(context.selection)))
    if batch_num and total_batches:
        return (
            f"memories-{context.mode.value}-{selection}"
            f"-part-{batch_num}-of-{total_batches}.zip"
        )
    return f"memories-{context.mode.value}-{selection}.zip"
