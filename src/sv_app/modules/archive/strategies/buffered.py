# src/sv_app/modules/archive/strategies/buffered.py
from __future__ import annotations

import io
import zipfile
from collections.abc import Mapping

from sv_app.core.errors import ArchiveError
from sv_app.core.logging import get_logger

from ..schemas import ArchiveResult
from .base import ArchiveStrategyBase, write_entries

logger = get_logger(__name__)


class BufferedStrategy(ArchiveStrategyBase):
    """Build the whole archive in memory and hand back the bytes."""

    name = "buffered"

    def __init__(self, compresslevel: int = 6) -> None:
        self.compresslevel = compresslevel

    def finalize(self, entries: Mapping[str, bytes], filename: str) -> ArchiveResult:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            write_entries(zf, entries, self.compresslevel)

        data = buf.getvalue()
        if not data:
            raise ArchiveError(
                "ZIP file generation resulted in a 0-byte file. "
                "Please try again or use smaller batches."
            )
        logger.info(
            "Created %s in memory (%.2f MB, %d entries)",
            filename,
            len(data) / (1024 * 1024),
            len(entries),
        )
        return ArchiveResult(filename=filename, size=len(data), data=data)
