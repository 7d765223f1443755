"""
app/connectors/http_page_fetcher.py

Plain-HTTP page fetcher built on requests.

Fetches the page (following redirects), then robots.txt and sitemap.xml from
the final origin. It does not render JavaScript; deployments that need a
rendered DOM plug in a browser-backed fetcher with the same interface.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from urllib.parse import urlsplit, urlunsplit

import requests

from app.config import PageFetchSettings
from app.connectors.base import CancellationToken, PageFetchError
from app.domain.analysis import PageSnapshot
from app.domain.errors import AnalysisCancelledError
from app.logging_utils import log_event

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class HttpPageFetcher:
    """
    Fetch one page before a deadline, releasing the HTTP session as soon
    as the cancel token fires.
    """

    def __init__(
        self,
        *,
        settings: PageFetchSettings,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._headers = {"User-Agent": settings.user_agent}
        self._max_html_bytes = int(settings.max_html_mb * 1024 * 1024)

    def fetch(
        self,
        url: str,
        *,
        timeout_seconds: float,
        cancel_token: CancellationToken,
    ) -> PageSnapshot:
        deadline = time.monotonic() + max(0.0, timeout_seconds)
        session = self._session_factory()
        cancel_token.on_cancel(session.close)

        try:
            response = self._get_with_retry(session, url, deadline, cancel_token)
            try:
                html = self._read_html(response, cancel_token)
            finally:
                response.close()

            final_url = response.url or url
            origin = self._origin(final_url)
            robots_txt = None
            sitemap_xml = None
            if self._settings.fetch_robots_txt:
                robots_txt = self._fetch_optional(session, f"{origin}/robots.txt", deadline, cancel_token)
            if self._settings.fetch_sitemap_xml:
                sitemap_xml = self._fetch_optional(session, f"{origin}/sitemap.xml", deadline, cancel_token)

            cancel_token.raise_if_cancelled()
            snapshot = PageSnapshot(
                requested_url=url,
                final_url=final_url,
                status_code=response.status_code,
                html=html,
                headers={key.lower(): value for key, value in response.headers.items()},
                redirect_chain=[item.url for item in response.history],
                robots_txt=robots_txt,
                sitemap_xml=sitemap_xml,
            )
            log_event(
                logger,
                logging.INFO,
                "page_fetched",
                url=url,
                final_url=final_url,
                status_code=response.status_code,
                html_bytes=len(html),
                redirects=len(snapshot.redirect_chain),
            )
            return snapshot
        except requests.RequestException as exc:
            if cancel_token.cancelled:
                raise AnalysisCancelledError("Page fetch was cancelled.") from exc
            raise PageFetchError(f"Failed to fetch {url}: {exc}") from exc
        finally:
            session.close()

    def _get_with_retry(
        self,
        session: requests.Session,
        url: str,
        deadline: float,
        cancel_token: CancellationToken,
    ) -> requests.Response:
        last_error: Exception | None = None

        for attempt in range(self._settings.max_retries + 1):
            cancel_token.raise_if_cancelled()
            try:
                return session.get(
                    url,
                    headers=self._headers,
                    timeout=self._request_timeout(deadline),
                    allow_redirects=True,
                    stream=True,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                if cancel_token.cancelled:
                    raise AnalysisCancelledError("Page fetch was cancelled.") from exc
                last_error = exc

            if attempt >= self._settings.max_retries:
                break

            backoff_seconds = self._settings.backoff_initial_seconds * (
                self._settings.backoff_multiplier**attempt
            )
            log_event(
                logger,
                logging.WARNING,
                "page_fetch_retry",
                url=url,
                attempt=attempt + 1,
                max_retries=self._settings.max_retries,
                wait_seconds=backoff_seconds,
                error=str(last_error),
            )
            if cancel_token.wait(min(backoff_seconds, max(0.0, deadline - time.monotonic()))):
                raise AnalysisCancelledError("Page fetch was cancelled.")

        raise PageFetchError(f"Failed to fetch {url} after retries: {last_error}")

    def _read_html(self, response: requests.Response, cancel_token: CancellationToken) -> str:
        buffer = bytearray()
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            cancel_token.raise_if_cancelled()
            if not chunk:
                continue
            buffer.extend(chunk)
            if len(buffer) > self._max_html_bytes:
                size_mb = len(buffer) / (1024 * 1024)
                raise PageFetchError(
                    f"HTML size {size_mb:.2f}MB exceeds limit of {self._settings.max_html_mb:g}MB"
                )
        return bytes(buffer).decode(response.encoding or "utf-8", errors="replace")

    def _fetch_optional(
        self,
        session: requests.Session,
        url: str,
        deadline: float,
        cancel_token: CancellationToken,
    ) -> str | None:
        cancel_token.raise_if_cancelled()
        if deadline - time.monotonic() <= 0:
            return None
        try:
            response = session.get(
                url,
                headers=self._headers,
                timeout=self._request_timeout(deadline),
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            if cancel_token.cancelled:
                raise AnalysisCancelledError("Page fetch was cancelled.") from exc
            log_event(logger, logging.INFO, "optional_resource_unavailable", url=url, error=str(exc))
            return None

        if response.status_code != 200:
            return None
        return response.text

    def _request_timeout(self, deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise PageFetchError("Fetch deadline exceeded.")
        return min(self._settings.request_timeout_seconds, remaining)

    @staticmethod
    def _origin(url: str) -> str:
        parts = urlsplit(url)
        return urlunsplit((parts.scheme, parts.netloc, "", "", ""))
