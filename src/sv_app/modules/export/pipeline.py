# src/sv_app/modules/export/pipeline.py
from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath

from sv_app.core.config import Settings, get_settings
from sv_app.core.errors import EmptyOutputError
from sv_app.core.logging import get_logger
from sv_app.core.media_types import is_json_content_type, is_zip
from sv_app.core.progress import ProgressReporter
from sv_app.core.session import SessionContext
from sv_app.modules.archive.service import Archiver
from sv_app.modules.history.store import HistoryStore

from .fetch import Fetcher
from .imaging import geotag, merge_overlay
from .schemas import AssetDescriptor, AssetState, Batch, ProcessingOutcome
from .unwrap import Manifest, extract_zip

logger = get_logger(__name__)

MiB = 1024 * 1024
JPEG_SUFFIXES = (".jpg", ".jpeg")


class RetrievalPipeline:
    """
    Download, unwrap, merge, geotag and archive every asset of one batch with
    a fixed pool of worker threads pulling from a shared FIFO queue.

    Workers check the session's cancel flag before taking the next asset and
    always finish the asset in hand. Any exception raised while processing an
    asset is turned into that asset's `error` state.
    """

    def __init__(
        self,
        session: SessionContext,
        fetcher: Fetcher,
        archiver: Archiver,
        settings: Settings | None = None,
        history: HistoryStore | None = None,
        concurrency: int | None = None,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.session = session
        self.fetcher = fetcher
        self.archiver = archiver
        self.settings = settings or get_settings()
        self.history = history
        self.concurrency = concurrency or self.settings.CONCURRENCY
        self.reporter = reporter
        self._size_lock = threading.Lock()
        self._cumulative = 0

    # ---- batch ---------------------------------------------------------------

    def run(self, batch: Batch) -> bool:
        """Process the whole batch; True iff at least one asset succeeded."""
        work: queue.Queue[AssetDescriptor] = queue.Queue()
        for asset in batch.assets:
            self.session.update_asset(
                asset, state=AssetState.pending, progress=0, retry_count=0
            )
            work.put(asset)

        with self._size_lock:
            self._cumulative = 0

        if self.reporter:
            self.reporter.start(
                "download",
                total=len(batch),
                text=f"Batch {batch.batch_num}/{batch.total_batches}",
            )
        try:
            workers = max(1, min(self.concurrency, len(batch) or 1))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="sv-fetch"
            ) as pool:
                futures = [pool.submit(self._worker, work) for _ in range(workers)]
                try:
                    for f in futures:
                        f.result()
                except KeyboardInterrupt:
                    logger.warning("Interrupted, finishing in-flight downloads")
                    self.session.cancel()
                    raise
        finally:
            if self.reporter:
                self.reporter.end("download")

        ok = any(a.state == AssetState.success for a in batch.assets)
        logger.info(
            "Batch %d/%d: %d succeeded, %d failed, %d not processed",
            batch.batch_num,
            batch.total_batches,
            len(batch.succeeded()),
            len(batch.failed()),
            sum(1 for a in batch.assets if a.state == AssetState.pending),
        )
        return ok

    def _worker(self, work: queue.Queue[AssetDescriptor]) -> None:
        while not self.session.cancelled:
            try:
                asset = work.get_nowait()
            except queue.Empty:
                return
            self.process(asset)

    # ---- asset ---------------------------------------------------------------

    def process(self, asset: AssetDescriptor) -> ProcessingOutcome:
        self.session.update_asset(asset, state=AssetState.processing, progress=0)
        try:
            data = self._produce(asset)
            path = self.archiver.add(asset, data)
            self.session.update_asset(asset, state=AssetState.success, progress=100)
            self.session.record_year_progress(asset.year, len(data))
            if self.history:
                self.history.record_success(asset.id)
            logger.debug("Archived %s as %s", asset.filename, path)
            return ProcessingOutcome(asset.id, ok=True, data=data)
        except Exception as e:
            logger.error("Error processing memory %s (%s): %s", asset.id, asset.filename, e)
            self.session.update_asset(asset, state=AssetState.error, progress=0)
            if self.history:
                self.history.record_failure(asset.id)
            return ProcessingOutcome(asset.id, ok=False, reason=str(e))
        finally:
            self.session.publish()
            if self.reporter:
                self.reporter.update("download", 1)

    def _produce(self, asset: AssetDescriptor) -> bytes:
        self._progress(asset, 5)
        fetched = self.fetcher.fetch(
            asset.url, asset.is_get, asset.filename, on_retry=self._on_retry(asset, 0)
        )
        primary = fetched.content
        overlay: bytes | None = None

        if is_zip(primary):
            self._progress(asset, 10)
            contents = extract_zip(primary, asset.kind, asset.filename)
            primary, overlay = contents.primary, contents.overlay
            self._progress(asset, 50 if overlay else 30)
        elif is_json_content_type(fetched.content_type):
            self._progress(asset, 10)
            manifest = Manifest.parse(fetched.content)
            self._progress(asset, 15)
            primary = self.fetcher.fetch(
                manifest.main_uri,
                True,
                asset.filename,
                on_retry=self._on_retry(asset, 15),
            ).content
            self._progress(asset, 50)
            if manifest.overlay_uri:
                overlay = self._fetch_overlay(asset, manifest.overlay_uri, True)

        if overlay is None and asset.overlay_url:
            overlay = self._fetch_overlay(asset, asset.overlay_url, asset.overlay_is_get)

        self._progress(asset, 75)
        data = primary
        if asset.is_image and overlay:
            try:
                data = merge_overlay(primary, overlay, self.settings.MERGE_JPEG_QUALITY)
            except Exception as e:
                logger.warning(
                    "Could not merge overlay for %s, proceeding with main image only: %s",
                    asset.filename,
                    e,
                )
                data = primary

        self._progress(asset, 90)
        data, embedded = geotag(asset, data)
        if embedded and not asset.filename.lower().endswith(JPEG_SUFFIXES):
            fixed = str(PurePosixPath(asset.filename).with_suffix(".jpg"))
            logger.warning("Correcting file extension for %s to .jpg", asset.filename)
            self.session.update_asset(asset, filename=fixed)

        if not data:
            raise EmptyOutputError(f"Generated file for {asset.filename} is empty")
        self._check_budget(asset, len(data))
        return data

    def _fetch_overlay(self, asset: AssetDescriptor, url: str, is_get: bool) -> bytes | None:
        try:
            return self.fetcher.fetch(url, is_get, f"{asset.filename} (overlay)").content
        except Exception as e:
            logger.warning(
                "Could not fetch overlay for %s, proceeding without overlay: %s",
                asset.filename,
                e,
            )
            return None

    # ---- helpers -------------------------------------------------------------

    def _progress(self, asset: AssetDescriptor, value: int) -> None:
        self.session.update_asset(asset, progress=value)

    def _on_retry(self, asset: AssetDescriptor, reset_to: int) -> Callable[[int], None]:
        def _cb(attempt: int) -> None:
            self.session.update_asset(asset, retry_count=attempt, progress=reset_to)

        return _cb

    def _check_budget(self, asset: AssetDescriptor, size: int) -> None:
        s = self.settings
        if size > s.MAX_SINGLE_FILE_SIZE:
            logger.warning(
                "Large file detected: %s (%.2f MB)", asset.filename, size / MiB
            )
        with self._size_lock:
            self._cumulative += size
            cumulative = self._cumulative
        if cumulative > s.HARD_MEMORY_LIMIT:
            logger.warning(
                "Memory limit reached: %.2f MB downloaded in this batch. "
                "Consider downloading the remaining files in a separate batch.",
                cumulative / MiB,
            )
        elif cumulative > s.SOFT_MEMORY_LIMIT:
            logger.warning("Approaching memory limit: %.2f MB downloaded", cumulative / MiB)
