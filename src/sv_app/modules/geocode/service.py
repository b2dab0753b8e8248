# src/sv_app/modules/geocode/service.py
from __future__ import annotations

from collections.abc import Callable, Sequence

from sv_app.core.errors import BoundaryDataError
from sv_app.core.logging import get_logger
from sv_app.core.progress import ProgressReporter
from sv_app.core.session import SessionContext
from sv_app.modules.export.schemas import AssetDescriptor

from .boundaries import BoundaryClassifier, get_classifier
from .schemas import (
    API_ERROR,
    LOCATION_NOT_IDENTIFIED,
    NO_LOCATION_DATA,
    PENDING_GEOCODING,
    GeocodeUpdate,
)

logger = get_logger(__name__)

UpdateCallback = Callable[[GeocodeUpdate], None]


class GeocodingService:
    """
    Label every asset with a country (or a status label) using the offline
    boundary classifier. Items without coordinates are reported first, before
    the boundary dataset is touched.
    """

    def __init__(
        self,
        session: SessionContext,
        classifier: BoundaryClassifier | None = None,
    ) -> None:
        self.session = session
        self.classifier = classifier or get_classifier()

    def classify_all(
        self,
        assets: Sequence[AssetDescriptor],
        on_update: UpdateCallback | None = None,
        reporter: ProgressReporter | None = None,
    ) -> None:
        with_location = [a for a in assets if a.has_location]
        without_location = [a for a in assets if not a.has_location]

        total = len(assets)
        processed = 0

        def _emit(asset: AssetDescriptor, label: str) -> None:
            nonlocal processed
            processed += 1
            self.session.update_asset(asset, country=label)
            update = GeocodeUpdate(
                progress=round(processed / total * 100),
                asset_id=asset.id,
                label=label,
            )
            if on_update:
                on_update(update)
            if reporter:
                reporter.update("geocode", 1, text=label)

        if reporter:
            reporter.start("geocode", total=total, text="Locating memories…")

        for asset in without_location:
            _emit(asset, NO_LOCATION_DATA)

        try:
            if not with_location:
                return
            try:
                self.classifier.load()
            except BoundaryDataError:
                logger.exception("Geocoding failed: boundary data unavailable")
                for asset in with_location:
                    if asset.country == PENDING_GEOCODING:
                        _emit(asset, API_ERROR)
                return

            for asset in with_location:
                if self.session.cancelled:
                    logger.info("Geocoding cancelled by user after %d item(s)", processed)
                    break
                country = self.classifier.classify(asset.longitude, asset.latitude)
                _emit(asset, country or LOCATION_NOT_IDENTIFIED)
        finally:
            if reporter:
                reporter.end("geocode")
