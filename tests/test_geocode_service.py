"""Coordinator behaviour: ordering, labels, cancellation and dataset failure."""

from sv_app.core.errors import BoundaryDataError
from sv_app.modules.geocode.boundaries import BoundaryClassifier
from sv_app.modules.geocode.schemas import (
    API_ERROR,
    LOCATION_NOT_IDENTIFIED,
    NO_LOCATION_DATA,
    PENDING_GEOCODING,
)
from sv_app.modules.geocode.service import GeocodingService


def _failing_loader():
    raise BoundaryDataError("boundary download failed")


class TestClassifyAll:
    def test_no_location_items_reported_first_in_order(self, session, classifier, make_asset):
        a = make_asset(latitude=5, longitude=5.5)
        b = make_asset(latitude=0, longitude=0)
        c = make_asset(latitude=1, longitude=1)
        d = make_asset(latitude=0, longitude=0)
        updates = []

        GeocodingService(session, classifier).classify_all([a, b, c, d], updates.append)

        assert [u.asset_id for u in updates] == [b.id, d.id, a.id, c.id]
        assert [u.label for u in updates[:2]] == [NO_LOCATION_DATA, NO_LOCATION_DATA]
        assert updates[-1].progress == 100

    def test_labels(self, session, classifier, make_asset):
        inside = make_asset(latitude=1, longitude=1)
        hole = make_asset(latitude=5, longitude=5)
        far = make_asset(latitude=25, longitude=25)

        GeocodingService(session, classifier).classify_all([inside, hole, far])

        assert inside.country == "Squareland"
        assert hole.country == LOCATION_NOT_IDENTIFIED
        assert far.country == "Farland"

    def test_rerun_is_idempotent(self, session, classifier, make_asset):
        assets = [make_asset(latitude=y, longitude=x) for x, y in [(1, 1), (5, 5), (0, 0), (25, 25)]]
        svc = GeocodingService(session, classifier)
        svc.classify_all(assets)
        first = [a.country for a in assets]
        svc.classify_all(assets)
        assert [a.country for a in assets] == first

    def test_dataset_failure_marks_remaining_api_error(self, session, make_asset):
        located = [make_asset(latitude=1, longitude=1) for _ in range(3)]
        missing = make_asset(latitude=0, longitude=0)
        svc = GeocodingService(session, BoundaryClassifier(_failing_loader))

        svc.classify_all(located + [missing])

        assert missing.country == NO_LOCATION_DATA
        assert all(a.country == API_ERROR for a in located)

    def test_cancel_stops_early_without_error(self, session, classifier, make_asset):
        assets = [make_asset(latitude=1, longitude=1) for _ in range(5)]
        seen = []

        def on_update(u):
            seen.append(u)
            if len(seen) == 2:
                session.cancel()

        GeocodingService(session, classifier).classify_all(assets, on_update)

        assert len(seen) == 2
        assert [a.country for a in assets[2:]] == [PENDING_GEOCODING] * 3
