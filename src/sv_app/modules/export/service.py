# src/sv_app/modules/export/service.py
"""
Export orchestration: single-download and batch flows on top of the
retrieval pipeline and the archiver.

Selections at or below the large-selection threshold run as one implicit
batch, optionally streamed to a destination picked up front. Larger
selections are planned into batches the caller processes one at a time or
all in sequence; batches always use the in-memory archive.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import BinaryIO

from sv_app.core.config import Settings, get_settings
from sv_app.core.errors import ArchiveError, DestinationCancelled
from sv_app.core.logging import get_logger
from sv_app.core.progress import ProgressReporter
from sv_app.core.session import SessionContext
from sv_app.modules.archive.service import Archiver
from sv_app.modules.archive.strategies.streaming import StreamingStrategy
from sv_app.modules.history.store import HistoryStore
from sv_app.modules.report.service import generate_report_html

from .fetch import Fetcher
from .pipeline import RetrievalPipeline
from .planner import is_large_selection, plan, single_batch
from .schemas import AssetDescriptor, Batch, BatchStatus, SelectionContext

logger = get_logger(__name__)

# Called synchronously with the archive filename; returns a writable binary
# handle, or raises DestinationCancelled when the user backs out.
DestinationPicker = Callable[[str], BinaryIO]

ERROR_ZIP_CREATION = "ERROR_ZIP_CREATION"


def _identity(key: str) -> str:
    return key


def _handle_path(handle: BinaryIO) -> Path | None:
    name = getattr(handle, "name", None)
    return Path(name) if isinstance(name, str) else None


class ExportService:
    def __init__(
        self,
        session: SessionContext,
        fetcher: Fetcher | None = None,
        settings: Settings | None = None,
        history: HistoryStore | None = None,
        translate: Callable[[str], str] = _identity,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.fetcher = fetcher or Fetcher.from_settings(self.settings)
        self.history = history
        self.translate = translate
        self.reporter = reporter

    # ---- entry points --------------------------------------------------------

    def is_large(self, assets: Sequence[AssetDescriptor], batch_size: int | None = None) -> bool:
        return is_large_selection(len(assets), self.settings.resolve_batch_size(batch_size))

    def start_download(
        self,
        assets: Sequence[AssetDescriptor],
        context: SelectionContext,
        picker: DestinationPicker | None = None,
    ) -> bool:
        """Run a whole selection as one batch. Returns True when an archive was produced."""
        self.session.clear_cancel()
        self.session.year_files.clear()
        self.session.year_bytes.clear()
        self.session.message_key = ""

        batch = single_batch(assets, context, self.translate)
        self.session.batches = [batch]
        self.session.batched = False
        self.session.current_batch = 1
        self.session.set_scope(batch.assets)

        # the destination must be obtained before any download work starts
        strategy: StreamingStrategy | None = None
        if picker is not None:
            try:
                handle = picker(batch.archive_filename)
                strategy = StreamingStrategy(
                    handle,
                    path=_handle_path(handle),
                    compresslevel=self.settings.ZIP_COMPRESSLEVEL,
                )
            except DestinationCancelled:
                logger.info("User cancelled file save")
                self.session.reset_for_new_download()
                return False
            except OSError as e:
                logger.warning(
                    "Failed to open destination, falling back to in-memory mode: %s", e
                )

        try:
            ok = self._process_and_archive(batch, context, strategy)
        except KeyboardInterrupt:
            logger.info("Download interrupted")
            self.session.reset_for_new_download()
            raise

        if self.session.cancelled:
            logger.info("Download cancelled")
            self.session.reset_for_new_download()
            return False
        if not ok:
            self.session.message_key = ERROR_ZIP_CREATION
        return ok

    def prepare_batches(
        self,
        assets: Sequence[AssetDescriptor],
        context: SelectionContext,
        batch_size: int | None = None,
    ) -> list[Batch]:
        size = self.settings.resolve_batch_size(batch_size)
        batches = plan(assets, size, context, self.translate)
        self.session.batches = batches
        self.session.batched = True
        self.session.current_batch = 0
        logger.info(
            "Planned %d batch(es) of up to %d for %d memories", len(batches), size, len(assets)
        )
        return batches

    def process_batch(self, batch: Batch, context: SelectionContext) -> bool:
        if self.session.cancelled:
            self.session.clear_cancel()
        self.session.current_batch = batch.batch_num
        self.session.update_batch(batch, status=BatchStatus.processing, archive=None)
        self.session.set_scope(batch.assets)
        return self._process_and_archive(batch, context, None)

    def process_all_batches(self, context: SelectionContext) -> list[Batch]:
        """Process every still-planned batch in order until cancelled."""
        done: list[Batch] = []
        for batch in [b for b in self.session.batches if b.status == BatchStatus.planned]:
            if self.session.cancelled:
                break
            self.process_batch(batch, context)
            done.append(batch)
        return done

    # ---- one batch -----------------------------------------------------------

    def _process_and_archive(
        self,
        batch: Batch,
        context: SelectionContext,
        strategy: StreamingStrategy | None,
    ) -> bool:
        archiver = Archiver(
            context, self.translate, compresslevel=self.settings.ZIP_COMPRESSLEVEL
        )
        pipeline = RetrievalPipeline(
            self.session,
            self.fetcher,
            archiver,
            settings=self.settings,
            history=self.history,
            reporter=self.reporter,
        )
        try:
            pipeline.run(batch)
        except BaseException:
            # interrupted mid-batch: no partial archive may survive
            if strategy:
                strategy.discard()
            archiver.clear()
            if self.session.batched:
                self.session.update_batch(batch, status=BatchStatus.planned)
            raise

        if self.session.cancelled:
            if strategy:
                strategy.discard()
            if self.session.batched:
                self.session.update_batch(batch, status=BatchStatus.planned)
            return False

        succeeded, failed = batch.succeeded(), batch.failed()
        if not succeeded:
            logger.warning(
                "No files were processed successfully in batch %d. Skipping ZIP generation.",
                batch.batch_num,
            )
            if strategy:
                strategy.discard()
            self.session.update_batch(batch, status=BatchStatus.error)
            return False

        if self.reporter:
            self.reporter.start("archive", total=None, text=batch.archive_filename)
        try:
            if failed:
                archiver.add_report(generate_report_html(batch, succeeded, failed))
            result = archiver.finalize(batch.archive_filename, strategy)
        except ArchiveError as e:
            logger.error("Error generating ZIP for batch %d: %s", batch.batch_num, e)
            self.session.update_batch(batch, status=BatchStatus.error)
            return False
        finally:
            archiver.clear()
            if self.reporter:
                self.reporter.end("archive")

        self.session.update_batch(batch, status=BatchStatus.success, archive=result)
        return True
