# src/sv_app/modules/archive/strategies/streaming.py
from __future__ import annotations

import zipfile
from collections.abc import Mapping
from pathlib import Path
from typing import BinaryIO

from sv_app.core.errors import ArchiveError
from sv_app.core.logging import get_logger

from ..schemas import ArchiveResult
from .base import ArchiveStrategyBase, write_entries

logger = get_logger(__name__)


class StreamingStrategy(ArchiveStrategyBase):
    """
    Encode the archive directly into a destination handle obtained up front.
    Only one entry is compressed at a time; the finished archive never
    exists in memory. The handle is closed after finalize, success or not.
    """

    name = "streaming"

    def __init__(
        self, destination: BinaryIO, path: Path | None = None, compresslevel: int = 6
    ) -> None:
        self.destination = destination
        self.path = path
        self.compresslevel = compresslevel

    def finalize(self, entries: Mapping[str, bytes], filename: str) -> ArchiveResult:
        written = 0
        try:
            with zipfile.ZipFile(self.destination, "w", zipfile.ZIP_DEFLATED) as zf:
                write_entries(zf, entries, self.compresslevel)
            try:
                written = self.destination.tell()
            except OSError:
                written = 0
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveError(f"Streaming ZIP to {filename} failed: {e}") from e
        finally:
            self._close()

        if self.path is not None and written == 0:
            written = self.path.stat().st_size if self.path.exists() else 0
        if written == 0:
            raise ArchiveError(f"Streaming ZIP to {filename} wrote 0 bytes")

        logger.info("Streamed %s (%.2f MB)", filename, written / (1024 * 1024))
        return ArchiveResult(
            filename=filename, size=written, streamed=True, path=self.path
        )

    def _close(self) -> None:
        try:
            self.destination.close()
        except OSError as e:
            logger.warning("Could not close streaming destination: %s", e)

    def discard(self) -> None:
        """Close the handle and remove a partially written destination."""
        self._close()
        if self.path is not None:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove partial archive %s: %s", self.path, e)
