"""Summaries and selection filtering."""

from datetime import datetime, timezone

import pytest

from sv_app.core.session import SessionContext
from sv_app.modules.export.schemas import MediaKind, SelectionContext, SelectionMode
from sv_app.modules.geocode.schemas import API_ERROR, LOCATION_NOT_IDENTIFIED, NO_LOCATION_DATA
from sv_app.modules.history.store import AssetHistory
from sv_app.modules.selection.schemas import CountryStatus
from sv_app.modules.selection.service import (
    country_summary,
    month_summary,
    select,
    year_summary,
    years_for_country_summary,
)


def _at(year, month=1):
    return datetime(year, month, 15, tzinfo=timezone.utc)


@pytest.fixture
def library(make_asset):
    return [
        make_asset(captured_at=_at(2023, 3), country="France"),
        make_asset(captured_at=_at(2023, 3), country="France", kind=MediaKind.video),
        make_asset(captured_at=_at(2023, 7), country="Spain"),
        make_asset(captured_at=_at(2024, 1), country="France"),
        make_asset(captured_at=_at(2024, 2), country=NO_LOCATION_DATA),
        make_asset(captured_at=_at(2022, 9), country=LOCATION_NOT_IDENTIFIED),
    ]


class TestSummaries:
    def test_years_newest_first(self, library):
        rows = year_summary(library)
        assert [r.year for r in rows] == [2024, 2023, 2022]
        y2023 = rows[1]
        assert (y2023.images, y2023.videos, y2023.total) == (2, 1, 3)

    def test_history_counts(self, library):
        history = {
            library[0].id: AssetHistory(success_count=1),
            library[1].id: AssetHistory(success_count=2, fail_count=1),
        }
        y2023 = year_summary(library, history)[1]
        assert y2023.downloaded_count == 2
        assert y2023.failed_count == 1

    def test_session_progress(self, library):
        session = SessionContext()
        session.record_year_progress(2024, 1000)
        session.record_year_progress(2024, 500)
        y2024 = year_summary(library, session=session)[0]
        assert (y2024.completed, y2024.size) == (2, 1500)

    def test_months(self, library):
        rows = month_summary(library, 2023)
        assert [(r.month, r.total) for r in rows] == [(3, 2), (7, 1)]

    def test_years_for_country(self, library):
        rows = years_for_country_summary(library, "France")
        assert [(r.year, r.total) for r in rows] == [(2024, 1), (2023, 2)]

    def test_country_order(self, library, make_asset):
        library.append(make_asset(country=API_ERROR))
        library.append(make_asset(country="austria"))
        rows = country_summary(library)
        assert [r.status for r in rows[:3]] == [
            CountryStatus.no_data,
            CountryStatus.unidentified,
            CountryStatus.unidentified,
        ]
        assert [r.country for r in rows[3:]] == ["austria", "France", "Spain"]
        assert next(r.total for r in rows if r.country == "France") == 3


class TestSelect:
    def test_year(self, library):
        ctx = SelectionContext(mode=SelectionMode.year, selection=2023)
        assert select(library, ctx) == library[:3]

    def test_months_within_year(self, library):
        ctx = SelectionContext(selection=2023, months=frozenset({7}))
        assert select(library, ctx) == [library[2]]

    def test_country(self, library):
        ctx = SelectionContext(mode=SelectionMode.country, selection="France")
        assert select(library, ctx) == [library[0], library[1], library[3]]

    def test_years_within_country(self, library):
        ctx = SelectionContext(
            mode=SelectionMode.country, selection="France", years=frozenset({2024})
        )
        assert select(library, ctx) == [library[3]]

    def test_nothing_selected(self, library):
        assert select(library, SelectionContext()) == []
