# src/sv_app/modules/export/planner.py
from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from sv_app.core.paths import archive_filename

from .schemas import AssetDescriptor, Batch, BatchStatus, SelectionContext


def is_large_selection(count: int, threshold: int) -> bool:
    return count > threshold


def partition(count: int, batch_size: int) -> list[range]:
    """Contiguous index ranges of at most `batch_size` covering 0..count."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    total = math.ceil(count / batch_size)
    return [
        range(i * batch_size, min((i + 1) * batch_size, count)) for i in range(total)
    ]


def plan(
    assets: Sequence[AssetDescriptor],
    batch_size: int,
    context: SelectionContext | None = None,
    translate: Callable[[str], str] | None = None,
) -> list[Batch]:
    """
    Split `assets` into contiguous, order-preserving batches of at most
    `batch_size` items, numbered from 1.
    """
    context = context or SelectionContext()
    ranges = partition(len(assets), batch_size)
    total = len(ranges)
    kwargs = {"translate": translate} if translate else {}

    return [
        Batch(
            batch_num=n,
            total_batches=total,
            assets=tuple(assets[r.start : r.stop]),
            archive_filename=archive_filename(context, n, total, **kwargs),
            status=BatchStatus.planned,
        )
        for n, r in enumerate(ranges, start=1)
    ]


def single_batch(
    assets: Sequence[AssetDescriptor],
    context: SelectionContext | None = None,
    translate: Callable[[str], str] | None = None,
) -> Batch:
    """The implicit batch used when a selection is below the threshold."""
    context = context or SelectionContext()
    kwargs = {"translate": translate} if translate else {}
    return Batch(
        batch_num=1,
        total_batches=1,
        assets=tuple(assets),
        archive_filename=archive_filename(context, **kwargs),
        status=BatchStatus.processing,
    )
