"""Crawler service: fetch, analyze and check one page into a CrawlResult.

Every failure below this layer is recovered into ``CrawlResult.error``; the
``crawl`` coroutine never raises for crawl-execution problems.
"""

from __future__ import annotations

import logging

from pageprobe.core.cancellation import CancelToken
from pageprobe.core.config import Settings
from pageprobe.core.errors import CrawlCancelledError, CrawlError
from pageprobe.core.url_validation import normalize_url
from pageprobe.services.analyzer import analyze_html
from pageprobe.services.fetcher import PageFetcher
from pageprobe.services.link_checker import LinkChecker
from pageprobe.services.links import classify_links
from pageprobe.services.models import BrokenLinkInfo, CrawlOutcome, CrawlResult

logger = logging.getLogger(__name__)


class CrawlerService:
    """Single-page crawl-and-analyze pipeline.

    Args:
        settings: Crawler settings (defaults to ``Settings()``)
        fetcher: Optional PageFetcher (built from settings when omitted)
        link_checker: Optional LinkChecker (built from settings when omitted)

    Example:
        >>> async with CrawlerService() as crawler:
        ...     result = await crawler.crawl("example.com", CancelToken())
        >>> result.internal_links
        3
    """

    def __init__(
        self,
        settings: Settings | None = None,
        fetcher: PageFetcher | None = None,
        link_checker: LinkChecker | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._fetcher = fetcher or PageFetcher(self._settings)
        self._link_checker = link_checker or LinkChecker(self._settings)

    @property
    def settings(self) -> Settings:
        """Settings this crawler was built with."""
        return self._settings

    async def crawl(self, raw_url: str, token: CancelToken) -> CrawlResult:
        """Crawl one page and assemble its result.

        Args:
            raw_url: URL as supplied by the caller (normalized here)
            token: Job cancellation token

        Returns:
            CrawlResult, terminal with ``error`` set on any failure
        """
        try:
            url = normalize_url(raw_url)
        except CrawlError as exc:
            logger.warning("URL validation failed for %r: %s", raw_url, exc)
            return CrawlResult.failed(raw_url, f"URL validation failed: {exc}")

        logger.info("Starting crawl for URL: %s", url)
        try:
            return await self._crawl(url, token)
        except CrawlCancelledError as exc:
            logger.info("Crawl cancelled for URL: %s", url)
            return CrawlResult.failed(url, str(exc), CrawlOutcome.CANCELLED)
        except CrawlError as exc:
            logger.error("Crawl failed for URL %s: %s", url, exc)
            return CrawlResult.failed(url, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected crawl failure for URL %s", url)
            return CrawlResult.failed(url, f"Unexpected crawl failure: {exc}")

    async def _crawl(self, url: str, token: CancelToken) -> CrawlResult:
        token.raise_if_cancelled()
        page = await self._fetcher.fetch(url, token)

        if page.is_redirect:
            # Redirect following disabled: report the redirect, analyze nothing
            return CrawlResult(url=url, status_code=page.status_code)

        analysis = analyze_html(page.body, page.final_url, page.encoding)
        links = classify_links(
            analysis.links, page.final_url, base_url=analysis.base_url
        )
        logger.info(
            "HTML parsed for URL %s: title=%r, internal=%d, external=%d",
            url,
            analysis.title,
            len(links.internal),
            len(links.external),
        )

        broken: list[BrokenLinkInfo] = []
        if self._settings.check_broken_links and len(links):
            broken = await self._link_checker.check_links(links.all, token)
        token.raise_if_cancelled()

        return CrawlResult(
            url=url,
            status_code=page.status_code,
            title=analysis.title,
            html_version=analysis.html_version,
            internal_links=len(links.internal),
            external_links=len(links.external),
            heading_counts=analysis.heading_counts,
            meta_tags=analysis.meta_tags,
            has_login_form=analysis.has_login_form,
            login_form_confidence=analysis.login_form_confidence,
            broken_links_details=tuple(broken),
        )

    async def close(self) -> None:
        """Close the fetcher and link checker clients."""
        await self._fetcher.close()
        await self._link_checker.close()

    async def __aenter__(self) -> CrawlerService:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and cleanup resources."""
        await self.close()


async def crawl_url(
    raw_url: str,
    settings: Settings | None = None,
    token: CancelToken | None = None,
) -> CrawlResult:
    """Crawl a single URL with a throwaway CrawlerService."""
    async with CrawlerService(settings) as crawler:
        return await crawler.crawl(raw_url, token or CancelToken())

