# src/sv_app/modules/archive/strategies/base.py
from __future__ import annotations

import zipfile
from abc import ABC, abstractmethod
from collections.abc import Mapping

from ..schemas import ArchiveResult

__all__ = [
    "ArchiveStrategyBase",
    "write_entries",
]


class ArchiveStrategyBase(ABC):
    """Strategy interface for turning accumulated entries into one package."""

    name: str = "base"

    @abstractmethod
    def finalize(self, entries: Mapping[str, bytes], filename: str) -> ArchiveResult:
        raise NotImplementedError


def write_entries(
    zf: zipfile.ZipFile, entries: Mapping[str, bytes], compresslevel: int
) -> None:
    for path, data in entries.items():
        zf.writestr(
            path,
            data,
            compress_type=zipfile.ZIP_DEFLATED,
            compresslevel=compresslevel,
        )
