"""Page fetcher with redirect policy, retries and cancellation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from pageprobe.core.cancellation import CancelToken
from pageprobe.core.config import Settings
from pageprobe.core.errors import (
    CrawlError,
    TooManyRedirectsError,
    TransportError,
    UnsupportedContentTypeError,
)
from pageprobe.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def build_headers(user_agent: str) -> dict[str, str]:
    """Browser-like request headers carrying the configured client identifier."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "max-age=0",
    }


def is_html_content_type(content_type: str | None) -> bool:
    """Return True if a Content-Type header value indicates an HTML document."""
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    return media_type in HTML_CONTENT_TYPES


@dataclass(frozen=True)
class FetchResult:
    """Fully read response for a page fetch.

    Args:
        url: URL that was requested
        final_url: URL of the returned response after redirects
        status_code: HTTP status of the returned response
        content_type: Raw Content-Type header value ("" when absent)
        body: Response body
        encoding: Charset declared by the response, if any
        redirected: Number of redirects followed
        is_redirect: True when redirect following was disabled and the
            returned response is itself a redirect
    """

    url: str
    final_url: str
    status_code: int
    content_type: str
    body: bytes
    encoding: str | None = None
    redirected: int = 0
    is_redirect: bool = False


class PageFetcher:
    """Fetch a single page under the configured timeout, redirect and retry policy.

    Non-2xx responses are returned as-is for the caller to interpret; only
    transport failures are retried. ``settings.timeout`` caps each whole
    attempt, body download included, not just every single network read.
    A response that is not HTML raises ``UnsupportedContentTypeError`` and
    is never retried.

    Args:
        settings: Crawler settings (defaults to ``Settings()``)
        client: Optional preconfigured ``httpx.AsyncClient``; when omitted a
            client is created from ``settings`` and closed by ``close()``
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.timeout),
            max_redirects=self._settings.max_redirects,
            headers=build_headers(self._settings.user_agent),
        )
        self._retry = RetryPolicy(
            max_retries=self._settings.max_retries,
            delays=[self._settings.retry_delay],
        )

    async def fetch(self, url: str, token: CancelToken) -> FetchResult:
        """Fetch ``url`` and return its fully read response.

        Args:
            url: Validated absolute URL
            token: Job cancellation token

        Returns:
            FetchResult for the final response

        Raises:
            CrawlCancelledError: If the token fires before the fetch completes
            TransportError: If every attempt failed at the transport level
            TooManyRedirectsError: If the redirect chain exceeds the maximum
            CrawlError: If a redirect points at a non-HTTP(S) URL
            UnsupportedContentTypeError: If the response is not HTML
        """
        follow = self._settings.follow_redirects
        timeout = self._settings.timeout

        async def _attempt() -> httpx.Response:
            logger.debug("GET %s", url)
            try:
                async with asyncio.timeout(timeout):
                    return await self._client.get(url, follow_redirects=follow)
            except TimeoutError as exc:
                raise httpx.TimeoutException(
                    f"Request exceeded total timeout of {timeout}s"
                ) from exc

        try:
            response = await self._retry.execute_async(
                _attempt,
                token,
                retryable_exceptions=(httpx.TransportError,),
                operation_name=f"GET {url}",
            )
        except httpx.TooManyRedirects as exc:
            raise TooManyRedirectsError(url, self._settings.max_redirects) from exc
        except httpx.UnsupportedProtocol as exc:
            raise CrawlError(f"Unsupported redirect target: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransportError(url, self._retry.max_attempts, exc) from exc
        except httpx.HTTPError as exc:
            raise CrawlError(f"Failed to fetch URL: {exc}") from exc

        content_type = response.headers.get("content-type", "")
        logger.info(
            "HTTP response for %s: status=%d content-type=%s",
            url,
            response.status_code,
            content_type or "<none>",
        )

        if not follow and response.is_redirect:
            return self._to_result(url, response, content_type, is_redirect=True)

        if not is_html_content_type(content_type):
            raise UnsupportedContentTypeError(
                url, content_type or "<none>", response.status_code
            )

        return self._to_result(url, response, content_type)

    def _to_result(
        self,
        url: str,
        response: httpx.Response,
        content_type: str,
        is_redirect: bool = False,
    ) -> FetchResult:
        return FetchResult(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            content_type=content_type,
            body=response.content,
            encoding=response.charset_encoding,
            redirected=len(response.history),
            is_redirect=is_redirect,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> PageFetcher:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and cleanup resources."""
        await self.close()
