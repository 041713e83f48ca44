"""Unit tests for CrawlerService result assembly and error recovery."""

import asyncio

import httpx
import pytest
import respx

from pageprobe.core.cancellation import CancelToken
from pageprobe.services.crawler import CrawlerService, crawl_url
from pageprobe.services.models import BrokenLinkInfo, CrawlOutcome
from tests.fixtures.html_pages import LANDING_PAGE, page_with_links
from tests.fixtures.slow_responses import trickling_html


def _mock_landing_links(missing: str = "https://example.com/contact") -> None:
    for url in (
        "https://example.com/about",
        "https://example.com/contact",
        "https://www.iana.org/domains/example",
    ):
        status = 404 if url == missing else 200
        respx.head(url).mock(return_value=httpx.Response(status))


@respx.mock
@pytest.mark.asyncio
async def test_crawl_assembles_full_result(fast_settings) -> None:
    respx.get("https://example.com/").mock(
        return_value=httpx.Response(200, html=LANDING_PAGE)
    )
    _mock_landing_links()

    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("example.com", CancelToken())

    assert result.error is None
    assert result.outcome is CrawlOutcome.COMPLETED
    assert result.url == "https://example.com"
    assert result.status_code == 200
    assert result.title == "Example Landing"
    assert result.html_version == "HTML5"
    assert result.internal_links == 2
    assert result.external_links == 1
    assert result.heading_counts["h1"] == 1
    assert result.heading_counts["h2"] == 2
    assert result.meta_tags["description"] == "Landing page for tests"
    assert result.has_login_form is True
    assert result.broken_links == 1
    assert result.broken_links_details == (
        BrokenLinkInfo("https://example.com/contact", 404, "HTTP 404"),
    )


@pytest.mark.asyncio
async def test_invalid_url_fails_before_any_request(fast_settings) -> None:
    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("   ", CancelToken())

    assert result.outcome is CrawlOutcome.FAILED
    assert result.error == "URL validation failed: URL cannot be empty"
    assert result.status_code == 0


@pytest.mark.asyncio
async def test_unsupported_scheme_is_rejected(fast_settings) -> None:
    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("ftp://example.com/file", CancelToken())

    assert result.error.startswith("URL validation failed: Unsupported URL scheme")


@respx.mock
@pytest.mark.asyncio
async def test_transport_failure_is_recovered_into_result(fast_settings) -> None:
    route = respx.get("https://example.com/").mock(
        side_effect=httpx.ConnectError("connection refused")
    )

    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("https://example.com/", CancelToken())

    assert result.outcome is CrawlOutcome.FAILED
    assert result.error.startswith("Failed to fetch URL after 4 attempts")
    assert result.status_code == 0
    assert result.title == ""
    assert route.call_count == 4


@respx.mock
@pytest.mark.asyncio
async def test_non_html_response_fails_with_zero_values(fast_settings) -> None:
    respx.get("https://example.com/data.json").mock(
        return_value=httpx.Response(200, json={"items": []})
    )

    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("https://example.com/data.json", CancelToken())

    assert result.error == (
        "URL does not return HTML content (Content-Type: application/json)"
    )
    assert result.status_code == 0
    assert result.internal_links == 0


@respx.mock
@pytest.mark.asyncio
async def test_error_status_page_is_still_analyzed(fast_settings) -> None:
    respx.get("https://example.com/missing").mock(
        return_value=httpx.Response(
            404, html="<!DOCTYPE html><title>Not Found</title><h1>404</h1>"
        )
    )

    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("https://example.com/missing", CancelToken())

    assert result.error is None
    assert result.status_code == 404
    assert result.title == "Not Found"
    assert result.heading_counts["h1"] == 1


@respx.mock
@pytest.mark.asyncio
async def test_link_checking_can_be_disabled(fast_settings) -> None:
    respx.get("https://example.com/").mock(
        return_value=httpx.Response(200, html=LANDING_PAGE)
    )
    settings = fast_settings.model_copy(update={"check_broken_links": False})

    async with CrawlerService(settings) as crawler:
        result = await crawler.crawl("https://example.com/", CancelToken())

    assert result.internal_links == 2
    assert result.broken_links == 0
    assert len(respx.calls) == 1


@respx.mock
@pytest.mark.asyncio
async def test_links_are_classified_against_final_url(fast_settings) -> None:
    respx.get("http://example.com/").mock(
        return_value=httpx.Response(
            301, headers={"Location": "https://www.example.com/home"}
        )
    )
    respx.get("https://www.example.com/home").mock(
        return_value=httpx.Response(
            200, html=page_with_links("/a", "https://example.com/b")
        )
    )
    settings = fast_settings.model_copy(update={"check_broken_links": False})

    async with CrawlerService(settings) as crawler:
        result = await crawler.crawl("http://example.com/", CancelToken())

    assert result.url == "http://example.com/"
    assert result.status_code == 200
    assert result.internal_links == 1
    assert result.external_links == 1


@respx.mock
@pytest.mark.asyncio
async def test_unfollowed_redirect_reports_status_only(fast_settings) -> None:
    respx.get("https://example.com/old").mock(
        return_value=httpx.Response(
            302, headers={"Location": "https://example.com/new"}
        )
    )
    settings = fast_settings.model_copy(update={"follow_redirects": False})

    async with CrawlerService(settings) as crawler:
        result = await crawler.crawl("https://example.com/old", CancelToken())

    assert result.error is None
    assert result.status_code == 302
    assert result.title == ""
    assert result.internal_links == 0


@pytest.mark.asyncio
async def test_cancelled_token_yields_cancelled_result(fast_settings) -> None:
    token = CancelToken()
    token.cancel()

    async with CrawlerService(fast_settings) as crawler:
        result = await crawler.crawl("https://example.com/", token)

    assert result.outcome is CrawlOutcome.CANCELLED
    assert result.error == "Crawl was cancelled"
    assert result.url == "https://example.com/"


class _ExplodingFetcher:
    async def fetch(self, url, token):
        raise RuntimeError("boom")

    async def close(self) -> None:
        pass


@pytest.mark.asyncio
async def test_unexpected_errors_are_recovered(fast_settings) -> None:
    crawler = CrawlerService(fast_settings, fetcher=_ExplodingFetcher())
    try:
        result = await crawler.crawl("https://example.com/", CancelToken())
    finally:
        await crawler.close()

    assert result.outcome is CrawlOutcome.FAILED
    assert result.error == "Unexpected crawl failure: boom"


@respx.mock
@pytest.mark.asyncio
async def test_crawl_url_helper(fast_settings) -> None:
    respx.get("https://example.com/").mock(
        return_value=httpx.Response(200, html=page_with_links())
    )

    result = await crawl_url("https://example.com/", fast_settings)

    assert result.success is True
    assert result.internal_links == 0
    assert result.external_links == 0


@respx.mock
@pytest.mark.asyncio
async def test_trickling_page_fails_within_timeout(fast_settings) -> None:
    respx.get("https://example.com/").mock(side_effect=trickling_html)
    settings = fast_settings.model_copy(
        update={"timeout": 0.5, "max_retries": 0, "check_broken_links": False}
    )

    async with CrawlerService(settings) as crawler:
        result = await asyncio.wait_for(
            crawler.crawl("https://example.com/", CancelToken()), 4.0
        )

    assert result.outcome is CrawlOutcome.FAILED
    assert result.error.startswith("Failed to fetch URL after 1 attempts")
    assert result.status_code == 0
