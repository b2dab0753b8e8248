# src/sv_app/modules/history/store.py
"""
Per-asset download history persisted as one JSON file.

The file is discarded whenever the app version or the loaded export changes,
so counts from an older export never leak into a newer one.
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

from sv_app.core.logging import get_logger
from sv_app.modules.export.schemas import AssetDescriptor

logger = get_logger(__name__)

NO_ASSETS_HASH = "no-memories"


@dataclass
class AssetHistory:
    success_count: int = 0
    fail_count: int = 0


def dataset_hash(assets: Sequence[AssetDescriptor]) -> str:
    """SHA-1 over count, first URL and last URL."""
    if not assets:
        return NO_ASSETS_HASH
    combined = f"{len(assets)}|{assets[0].url}|{assets[-1].url}"
    return hashlib.sha1(combined.encode("utf-8")).hexdigest()


class HistoryStore:
    def __init__(self, path: Path, version: str) -> None:
        self.path = Path(path)
        self.version = version
        self._lock = threading.Lock()
        self._data_hash: str | None = None
        self._history: dict[str, AssetHistory] = {}

    def init(self, assets: Sequence[AssetDescriptor]) -> None:
        """Load matching history for `assets`, or start fresh."""
        new_hash = dataset_hash(assets)
        stored = self._read()
        with self._lock:
            self._data_hash = new_hash
            if (
                stored.get("version") != self.version
                or stored.get("data_hash") != new_hash
            ):
                logger.info("App version or data file changed. Resetting download history.")
                self._history = {}
                self._write_locked()
                return

            logger.info("Matching data file detected. Loading previous download history.")
            self._history = {}
            for asset_id, entry in (stored.get("history") or {}).items():
                if isinstance(entry, dict):
                    self._history[asset_id] = AssetHistory(
                        success_count=int(entry.get("success_count", 0)),
                        fail_count=int(entry.get("fail_count", 0)),
                    )

    def record_success(self, asset_id: str) -> None:
        with self._lock:
            self._history.setdefault(asset_id, AssetHistory()).success_count += 1
            self._write_locked()

    def record_failure(self, asset_id: str) -> None:
        with self._lock:
            self._history.setdefault(asset_id, AssetHistory()).fail_count += 1
            self._write_locked()

    def get_history(self, asset_ids: Iterable[str]) -> dict[str, AssetHistory]:
        with self._lock:
            return {
                i: AssetHistory(**asdict(self._history[i]))
                for i in asset_ids
                if i in self._history
            }

    def clear(self) -> None:
        with self._lock:
            self._history = {}
            self._data_hash = None
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Failed to clear download history at %s: %s", self.path, e)

    # ---- storage -------------------------------------------------------------

    def _read(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.error("Failed to read download history from %s: %s", self.path, e)
            return {}
        try:
            doc = json.loads(raw)
        except ValueError as e:
            logger.error("Failed to parse download history from %s: %s", self.path, e)
            return {}
        return doc if isinstance(doc, dict) else {}

    def _write_locked(self) -> None:
        doc = {
            "version": self.version,
            "data_hash": self._data_hash,
            "history": {k: asdict(v) for k, v in self._history.items()},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(doc), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.error("Failed to save download history to %s: %s", self.path, e)
