from __future__ import annotations

from fastapi import HTTPException, status


class SvAppError(Exception):
    """Base application exception."""

    pass


class BadRequest(SvAppError):
    pass


class NotFound(SvAppError):
    pass


# ---- retrieval ---------------------------------------------------------------


class FetchError(SvAppError):
    """Transient retrieval failure (network, timeout, non-2xx) after all attempts."""


class FatalFetchError(FetchError):
    """403/404 on the final content fetch: the signed link is expired or invalid."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"Fatal download error {status_code}: file not accessible")
        self.status_code = status_code
        self.url = url


class MissingContentError(SvAppError):
    """A container (ZIP or manifest) did not hold the expected primary media."""


class MalformedManifest(MissingContentError):
    pass


class EmptyOutputError(SvAppError):
    """Processing produced zero bytes."""


# ---- geocoding ---------------------------------------------------------------


class BoundaryDataError(SvAppError):
    """Country boundary dataset could not be loaded or parsed."""


# ---- archive -----------------------------------------------------------------


class ArchiveError(SvAppError):
    pass


class DestinationCancelled(SvAppError):
    """User dismissed the destination picker. Not an error for the batch."""


# ---- parsing -----------------------------------------------------------------


class ParseError(BadRequest):
    def __init__(self, message_key: str, detail: str | None = None) -> None:
        super().__init__(detail or message_key)
        self.message_key = message_key


def to_http(exc: Exception) -> HTTPException:
    """
    Convert our exceptions to HTTPException with sensible defaults.
    """
    if isinstance(exc, BadRequest):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, BoundaryDataError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        )
    if isinstance(exc, SvAppError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    # Fallback
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
    )
