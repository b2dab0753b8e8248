# src/sv_app/modules/geocode/router.py
from fastapi import APIRouter

from sv_app.core.errors import to_http

from .boundaries import get_classifier
from .schemas import ClassifyRequest, ClassifyResponse

router = APIRouter(prefix="/geocode", tags=["geocode"])


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    summary="Resolve the country containing a coordinate",
    description=(
        "Point-in-polygon lookup against the country boundary dataset. "
        "Returns `country: null` when no boundary contains the point."
    ),
)
def classify(req: ClassifyRequest) -> ClassifyResponse:
    try:
        country = get_classifier().classify(req.longitude, req.latitude)
        return ClassifyResponse(
            longitude=req.longitude, latitude=req.latitude, country=country
        )
    except Exception as err:
        raise to_http(err) from err
