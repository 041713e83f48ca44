"""Broken-link checker: concurrent liveness probes for classified links."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

import httpx

from pageprobe.core.cancellation import CancelToken
from pageprobe.core.config import Settings
from pageprobe.core.errors import CrawlCancelledError
from pageprobe.core.url_validation import is_http_url
from pageprobe.resilience.retry import RetryPolicy
from pageprobe.services.fetcher import build_headers
from pageprobe.services.links import deduplicate_links, host_matches
from pageprobe.services.models import BrokenLinkInfo

logger = logging.getLogger(__name__)

# Statuses after which a HEAD probe is repeated as GET
HEAD_UNSUPPORTED_STATUSES = frozenset({405, 501})


class _ServerError(Exception):
    """Retryable 5xx probe response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


class LinkChecker:
    """Probe links for liveness with a bounded worker pool.

    Links on deny-listed hosts are skipped. Each surviving link gets a HEAD
    request (repeated as GET when the server rejects HEAD); a status >= 400
    or a transport failure is reported as a BrokenLinkInfo.

    Args:
        settings: Crawler settings (defaults to ``Settings()``)
        client: Optional preconfigured ``httpx.AsyncClient`` for probes
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.link_check_timeout),
            follow_redirects=True,
            max_redirects=self._settings.link_check_max_redirects,
            headers=build_headers(self._settings.user_agent),
        )
        self._retry = RetryPolicy(
            max_retries=self._settings.link_check_retries,
            delays=[self._settings.link_check_retry_delay],
            exhausted_log_level=logging.DEBUG,
        )
        self._ignored = frozenset(self._settings.link_check_ignore_statuses)

    def filter_links(self, links: Iterable[str]) -> list[str]:
        """Drop links whose host is on the skip deny-list; dedupe, keep order."""
        skip = self._settings.link_check_skip_domains
        return [
            link for link in deduplicate_links(links) if not host_matches(link, skip)
        ]

    async def check_links(
        self, links: Iterable[str], token: CancelToken
    ) -> list[BrokenLinkInfo]:
        """Check links concurrently and return the broken ones.

        Results follow the order of the filtered input, so a run without
        retries is deterministic.

        Args:
            links: Absolute links to probe
            token: Job cancellation token

        Returns:
            BrokenLinkInfo for every link that failed its probe

        Raises:
            CrawlCancelledError: If the token fires before all checks finish
        """
        candidates = deduplicate_links(links)
        targets = self.filter_links(candidates)
        if not targets:
            return []

        semaphore = asyncio.Semaphore(self._settings.link_check_concurrency)

        async def _bounded_check(target_url: str) -> BrokenLinkInfo | None:
            async with semaphore:
                token.raise_if_cancelled()
                await token.sleep(self._settings.link_check_delay)
                return await self.check_link(target_url, token)

        tasks = [
            asyncio.create_task(_bounded_check(target_url)) for target_url in targets
        ]
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        token.raise_if_cancelled()

        broken: list[BrokenLinkInfo] = []
        for target_url, outcome in zip(targets, outcomes):
            if isinstance(outcome, CrawlCancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning("Link check for %s crashed: %s", target_url, outcome)
                broken.append(BrokenLinkInfo(target_url, 0, str(outcome)))
            elif outcome is not None:
                broken.append(outcome)

        logger.info(
            "Checked %d links (%d skipped): %d broken",
            len(targets),
            len(candidates) - len(targets),
            len(broken),
        )
        return broken

    async def check_link(self, url: str, token: CancelToken) -> BrokenLinkInfo | None:
        """Probe a single link.

        Returns:
            None when the link answers with 2xx/3xx (or an ignored status),
            otherwise a BrokenLinkInfo

        Raises:
            CrawlCancelledError: If the token fires during the probe
        """
        if not is_http_url(url):
            return BrokenLinkInfo(url, 0, "Invalid URL format")

        try:
            response = await self._probe(url, "HEAD", token)
            if response.status_code in HEAD_UNSUPPORTED_STATUSES:
                response = await self._probe(url, "GET", token)
        except _ServerError as exc:
            response = exc.response
        except httpx.HTTPError as exc:
            logger.debug("Link %s failed: %s", url, exc)
            return BrokenLinkInfo(url, 0, _describe_failure(exc))

        status = response.status_code
        if status < 400 or status in self._ignored:
            return None
        return BrokenLinkInfo(url, status, f"HTTP {status}")

    async def _probe(
        self, url: str, method: str, token: CancelToken
    ) -> httpx.Response:
        timeout = self._settings.link_check_timeout

        async def _attempt() -> httpx.Response:
            # Only the status line matters; the body is never downloaded
            try:
                async with asyncio.timeout(timeout):
                    async with self._client.stream(method, url) as response:
                        status = response.status_code
            except TimeoutError as exc:
                raise httpx.TimeoutException(
                    f"Link check exceeded total timeout of {timeout}s"
                ) from exc
            if (
                status >= 500
                and status not in HEAD_UNSUPPORTED_STATUSES
                and self._retry.max_retries
            ):
                raise _ServerError(response)
            return response

        return await self._retry.execute_async(
            _attempt,
            token,
            retryable_exceptions=(httpx.TransportError, _ServerError),
            operation_name=f"{method} {url}",
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if this checker created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> LinkChecker:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and cleanup resources."""
        await self.close()


def _describe_failure(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"Timeout: {exc}" if str(exc) else "Timeout"
    if isinstance(exc, httpx.TooManyRedirects):
        return "Too many redirects"
    return str(exc) or exc.__class__.__name__
