# src/sv_app/modules/archive/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

REPORT_ENTRY = "_Report.html"


@dataclass
class ArchiveResult:
    """
    A finished package. Buffered results carry the bytes in `data`;
    streamed results were written straight to `path` and carry no data.
    """

    filename: str
    size: int
    streamed: bool = False
    data: bytes | None = None
    path: Path | None = None
