# src/sv_app/modules/selection/service.py
from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence

from sv_app.core.session import SessionContext
from sv_app.modules.export.schemas import AssetDescriptor, SelectionContext, SelectionMode
from sv_app.modules.geocode.schemas import (
    API_ERROR,
    LOCATION_NOT_IDENTIFIED,
    NO_LOCATION_DATA,
)
from sv_app.modules.history.store import AssetHistory

from .schemas import CountryStatus, CountrySummary, MonthSummary, YearSummary

_STATUS_ORDER = {
    CountryStatus.no_data: 1,
    CountryStatus.unidentified: 2,
    CountryStatus.normal: 3,
}


def _tally(
    assets: Iterable[AssetDescriptor],
    key: Callable[[AssetDescriptor], int],
    history: Mapping[str, AssetHistory] | None,
) -> dict[int, list[int]]:
    """key -> [images, videos, downloaded, failed]"""
    history = history or {}
    counts: dict[int, list[int]] = defaultdict(lambda: [0, 0, 0, 0])
    for a in assets:
        row = counts[key(a)]
        row[0 if a.is_image else 1] += 1
        h = history.get(a.id)
        if h:
            if h.success_count > 0:
                row[2] += 1
            if h.fail_count > 0:
                row[3] += 1
    return counts


def year_summary(
    assets: Sequence[AssetDescriptor],
    history: Mapping[str, AssetHistory] | None = None,
    session: SessionContext | None = None,
) -> list[YearSummary]:
    """Newest year first, with session progress when a session is given."""
    counts = _tally(assets, lambda a: a.year, history)
    files = session.year_files if session else {}
    sizes = session.year_bytes if session else {}
    return sorted(
        (
            YearSummary(
                year=year,
                images=c[0],
                videos=c[1],
                downloaded_count=c[2],
                failed_count=c[3],
                completed=files.get(year, 0),
                size=sizes.get(year, 0),
            )
            for year, c in counts.items()
        ),
        key=lambda s: s.year,
        reverse=True,
    )


def month_summary(
    assets: Sequence[AssetDescriptor],
    year: int,
    history: Mapping[str, AssetHistory] | None = None,
) -> list[MonthSummary]:
    counts = _tally((a for a in assets if a.year == year), lambda a: a.month, history)
    return [
        MonthSummary(
            month=m, images=c[0], videos=c[1], downloaded_count=c[2], failed_count=c[3]
        )
        for m, c in sorted(counts.items())
    ]


def years_for_country_summary(
    assets: Sequence[AssetDescriptor],
    country: str,
    history: Mapping[str, AssetHistory] | None = None,
) -> list[YearSummary]:
    counts = _tally((a for a in assets if a.country == country), lambda a: a.year, history)
    return sorted(
        (
            YearSummary(
                year=y, images=c[0], videos=c[1], downloaded_count=c[2], failed_count=c[3]
            )
            for y, c in counts.items()
        ),
        key=lambda s: s.year,
        reverse=True,
    )


def country_status(label: str) -> CountryStatus:
    if label == NO_LOCATION_DATA:
        return CountryStatus.no_data
    if label in (LOCATION_NOT_IDENTIFIED, API_ERROR):
        return CountryStatus.unidentified
    return CountryStatus.normal


def country_summary(assets: Sequence[AssetDescriptor]) -> list[CountrySummary]:
    """no-data first, then unidentified, then countries by name."""
    totals: dict[str, int] = defaultdict(int)
    for a in assets:
        totals[a.country] += 1
    rows = [CountrySummary(c, n, country_status(c)) for c, n in totals.items()]
    return sorted(rows, key=lambda r: (_STATUS_ORDER[r.status], r.country.casefold()))


def select(
    assets: Sequence[AssetDescriptor], context: SelectionContext
) -> list[AssetDescriptor]:
    """Assets matching the selection, in original order."""
    sel = context.selection
    if sel is None:
        return []

    if context.months_for_year and isinstance(sel, int):
        return [a for a in assets if a.year == sel and a.month in context.months]

    if context.years_for_country and isinstance(sel, str):
        return [a for a in assets if a.country == sel and a.year in context.years]

    if context.mode == SelectionMode.year:
        return [a for a in assets if a.year == sel]
    return [a for a in assets if a.country == sel]
