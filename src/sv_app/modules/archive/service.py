# src/sv_app/modules/archive/service.py
from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

from sv_app.core.errors import ArchiveError
from sv_app.core.logging import get_logger
from sv_app.core.paths import archive_path
from sv_app.modules.export.schemas import AssetDescriptor, SelectionContext

from .schemas import REPORT_ENTRY, ArchiveResult
from .strategies.base import ArchiveStrategyBase
from .strategies.buffered import BufferedStrategy

logger = get_logger(__name__)


def _identity(key: str) -> str:
    return key


class Archiver:
    """
    Collects processed files for one batch under their computed archive
    paths, then emits the package through a strategy. Workers call `add`
    concurrently; entry order is completion order.
    """

    def __init__(
        self,
        context: SelectionContext | None = None,
        translate: Callable[[str], str] = _identity,
        compresslevel: int = 6,
    ) -> None:
        self.context = context or SelectionContext()
        self.translate = translate
        self.compresslevel = compresslevel
        self._lock = threading.Lock()
        self._entries: dict[str, bytes] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def entries(self) -> dict[str, bytes]:
        with self._lock:
            return dict(self._entries)

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._entries.values())

    def add(self, asset: AssetDescriptor, data: bytes) -> str:
        path = archive_path(asset, self.context, self.translate)
        with self._lock:
            if path in self._entries:
                logger.warning("Duplicate archive path %s, replacing earlier entry", path)
            self._entries[path] = data
        return path

    def add_report(self, html: str) -> None:
        with self._lock:
            self._entries[REPORT_ENTRY] = html.encode("utf-8")

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def finalize(
        self, filename: str, strategy: ArchiveStrategyBase | None = None
    ) -> ArchiveResult:
        """
        Emit the package with `strategy` (buffered when omitted). A failed
        non-buffered strategy falls back to buffered on any error;
        ArchiveError escapes only when the buffered path fails too.
        """
        entries = self.entries
        buffered = BufferedStrategy(self.compresslevel)

        if strategy is None or isinstance(strategy, BufferedStrategy):
            return (strategy or buffered).finalize(entries, filename)

        try:
            return strategy.finalize(entries, filename)
        except Exception as e:
            logger.warning(
                "%s ZIP failed, falling back to in-memory mode: %s", strategy.name, e
            )
        return buffered.finalize(entries, filename)


def save_result(result: ArchiveResult, directory: Path) -> Path:
    """Write a buffered result to `directory`; streamed results are already on disk."""
    if result.streamed and result.path is not None:
        return result.path
    if result.data is None:
        raise ArchiveError(f"No archive data to save for {result.filename}")
    directory.mkdir(parents=True, exist_ok=True)
    dst = directory / result.filename
    dst.write_bytes(result.data)
    result.path = dst
    return dst
