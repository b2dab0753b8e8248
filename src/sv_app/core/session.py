# src/sv_app/core/session.py
"""
Shared session state for one export run.

Services receive the same `SessionContext` by reference. Asset fields and
counters are only mutated through the methods below, which take the session
lock; observers get immutable `ProgressSnapshot` copies.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sv_app.core.logging import get_logger
from sv_app.modules.export.schemas import AssetDescriptor, AssetState, Batch

logger = get_logger(__name__)

ProgressListener = Callable[["ProgressSnapshot"], None]
BatchListener = Callable[["Batch"], None]


@dataclass(frozen=True)
class ProgressSnapshot:
    total: int = 0
    completed: int = 0
    failed: int = 0
    currently_processing: int = 0
    percent: int = 0

    @property
    def pending(self) -> int:
        return self.total - self.completed - self.failed - self.currently_processing


class SessionContext:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._cancel = threading.Event()
        self._assets: dict[str, AssetDescriptor] = {}
        self._scope: list[str] = []
        self._percent = 0
        self._progress_listeners: list[ProgressListener] = []
        self._batch_listeners: list[BatchListener] = []
        self.year_files: dict[int, int] = defaultdict(int)
        self.year_bytes: dict[int, int] = defaultdict(int)
        self.batches: list[Batch] = []
        self.batched = False
        self.current_batch = 0
        self.expires_at: datetime | None = None
        self.message_key = ""

    # ---- assets ------------------------------------------------------------

    def load_assets(self, assets: Iterable[AssetDescriptor]) -> None:
        with self._lock:
            self._assets = {a.id: a for a in assets}

    @property
    def assets(self) -> list[AssetDescriptor]:
        with self._lock:
            return list(self._assets.values())

    def get(self, asset_id: str) -> AssetDescriptor | None:
        with self._lock:
            return self._assets.get(asset_id)

    def update_asset(self, asset: AssetDescriptor, **fields) -> None:
        """Single write path for pipeline/geocoder mutations of an asset."""
        with self._lock:
            for key, value in fields.items():
                setattr(asset, key, value)
            self._assets.setdefault(asset.id, asset)

    def set_scope(self, assets: Iterable[AssetDescriptor]) -> None:
        """Restrict progress accounting to the active selection."""
        with self._lock:
            self._scope = [a.id for a in assets]
            self._percent = 0

    # ---- cancellation ------------------------------------------------------

    def cancel(self) -> None:
        self._cancel.set()

    def clear_cancel(self) -> None:
        self._cancel.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ---- progress ----------------------------------------------------------

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            ids = self._scope or list(self._assets)
            completed = failed = processing = 0
            for asset_id in ids:
                state = self._assets[asset_id].state if asset_id in self._assets else None
                if state == AssetState.success:
                    completed += 1
                elif state == AssetState.error:
                    failed += 1
                elif state == AssetState.processing:
                    processing += 1
            total = len(ids)
            percent = round(completed / total * 100) if total else 0
            # never step backwards within a scope
            self._percent = max(self._percent, percent)
            return ProgressSnapshot(
                total=total,
                completed=completed,
                failed=failed,
                currently_processing=processing,
                percent=self._percent,
            )

    def record_year_progress(self, year: int, size: int) -> None:
        with self._lock:
            self.year_files[year] += 1
            self.year_bytes[year] += size

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        with self._lock:
            self._progress_listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._progress_listeners:
                    self._progress_listeners.remove(listener)

        return _unsubscribe

    def publish(self) -> ProgressSnapshot:
        snap = self.snapshot()
        with self._lock:
            listeners = list(self._progress_listeners)
        for listener in listeners:
            try:
                listener(snap)
            except Exception:
                logger.exception("Progress listener failed")
        return snap

    # ---- batches -----------------------------------------------------------

    def on_batch(self, listener: BatchListener) -> None:
        with self._lock:
            self._batch_listeners.append(listener)

    def update_batch(self, batch: Batch, **fields) -> None:
        with self._lock:
            for key, value in fields.items():
                setattr(batch, key, value)
            listeners = list(self._batch_listeners)
        for listener in listeners:
            try:
                listener(batch)
            except Exception:
                logger.exception("Batch listener failed")

    # ---- resets ------------------------------------------------------------

    def reset_for_new_download(self) -> None:
        """Keep parsed assets and labels, drop all download bookkeeping."""
        with self._lock:
            for asset in self._assets.values():
                asset.state = None
                asset.progress = 0
                asset.retry_count = 0
            self._scope = []
            self._percent = 0
            self.year_files.clear()
            self.year_bytes.clear()
            self.batches = []
            self.batched = False
            self.current_batch = 0
            self.message_key = ""
        self._cancel.clear()

    def reset(self) -> None:
        with self._lock:
            self._assets = {}
            self._scope = []
            self._percent = 0
            self.year_files.clear()
            self.year_bytes.clear()
            self.batches = []
            self.batched = False
            self.current_batch = 0
            self.expires_at = None
            self.message_key = ""
        self._cancel.clear()
