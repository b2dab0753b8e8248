# src/sv_app/modules/export/fetch.py
from __future__ import annotations

import time
from collections.abc import Callable
from typing import NamedTuple

import requests

from sv_app.core.config import Settings, get_settings
from sv_app.core.errors import FatalFetchError, FetchError
from sv_app.core.logging import get_logger

logger = get_logger(__name__)

FATAL_STATUS = {403, 404}
CHUNK_SIZE = 256 * 1024

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
}


class Fetched(NamedTuple):
    content: bytes
    content_type: str | None


class Fetcher:
    """
    Retrieve one URL with bounded retries.

    GET-style links are fetched directly. POST-style links are first
    exchanged for a signed URL (POST of the query string to the base URL),
    then that URL is fetched. Every attempt shares a single deadline of
    `timeout` seconds covering the exchange and the full body download.
    """

    def __init__(
        self,
        http: requests.Session | None = None,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 15.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.http = http or requests.Session()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs) -> Fetcher:
        s = settings or get_settings()
        return cls(
            max_attempts=s.FETCH_MAX_ATTEMPTS,
            retry_delay=s.FETCH_RETRY_DELAY,
            timeout=s.FETCH_TIMEOUT,
            **kwargs,
        )

    def fetch(
        self,
        url: str,
        is_get: bool,
        label: str,
        on_retry: Callable[[int], None] | None = None,
    ) -> Fetched:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._attempt(url, is_get)
            except FatalFetchError as e:
                logger.warning(
                    "Fatal error downloading %s: %s. Link may be expired, skipping retries.",
                    label,
                    e.status_code,
                )
                raise
            except (requests.RequestException, FetchError) as e:
                logger.warning("Attempt %d to download %s failed: %s", attempt, label, e)
                if attempt >= self.max_attempts:
                    raise FetchError(
                        f"Failed to download {label} after {self.max_attempts} attempts: {e}"
                    ) from e
                if on_retry:
                    on_retry(attempt)
                self.sleep(self.retry_delay * attempt)
        raise FetchError(f"Exhausted all attempts to download {label}.")

    # ---- single attempt ------------------------------------------------------

    def _attempt(self, url: str, is_get: bool) -> Fetched:
        deadline = time.monotonic() + self.timeout

        if not is_get:
            url = self._exchange(url, deadline)

        resp = self.http.get(
            url, headers=HEADERS, timeout=self._remaining(deadline), stream=True
        )
        try:
            if resp.status_code in FATAL_STATUS:
                raise FatalFetchError(resp.status_code, url)
            if not resp.ok:
                raise FetchError(f"Network response was not ok: {resp.status_code}")
            content = self._read_body(resp, deadline)
            return Fetched(content, resp.headers.get("Content-Type"))
        finally:
            resp.close()

    def _exchange(self, url: str, deadline: float) -> str:
        """POST the query string to the base URL; the body is the signed URL."""
        base, _, query = url.partition("?")
        resp = self.http.post(
            base,
            data=query,
            headers={
                **HEADERS,
                "Content-Type": "application/x-www-form-urlencoded",
            },
            timeout=self._remaining(deadline),
        )
        if not resp.ok:
            raise FetchError(f"POST request failed: {resp.status_code}")
        signed = resp.text.strip()
        if not signed:
            raise FetchError("POST request returned an empty download URL")
        return signed

    def _read_body(self, resp: requests.Response, deadline: float) -> bytes:
        chunks: list[bytes] = []
        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
            if time.monotonic() > deadline:
                raise FetchError(f"Timed out after {self.timeout:.0f}s")
            if chunk:
                chunks.append(chunk)
        return b"".join(chunks)

    def _remaining(self, deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchError(f"Timed out after {self.timeout:.0f}s")
        return remaining
