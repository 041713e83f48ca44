"""End-to-end crawl tests: JobManager -> CrawlerService -> mocked HTTP.

Every request is served by respx, so these run without network access while
still exercising the real fetcher, analyzer, classifier and link checker.

Example:
    $ pytest tests/integration -v -m integration
"""

import asyncio
import time

import httpx
import pytest
import respx

from pageprobe.core.errors import AlreadyRunningError
from pageprobe.services.jobs import JobManager
from pageprobe.services.models import BrokenLinkInfo, CrawlOutcome, CrawlResult
from tests.fixtures.html_pages import (
    LANDING_EXTERNAL_LINKS,
    LANDING_INTERNAL_LINKS,
    LANDING_PAGE,
    page_with_links,
)


@pytest.mark.integration
@respx.mock
@pytest.mark.asyncio
async def test_landing_page_end_to_end(fast_settings) -> None:
    """Test a full crawl of an HTML5 page with live links."""
    respx.get("https://example.com/").mock(
        return_value=httpx.Response(200, html=LANDING_PAGE)
    )
    for link in LANDING_INTERNAL_LINKS + LANDING_EXTERNAL_LINKS:
        respx.head(link).mock(return_value=httpx.Response(200))
    delivered: list[CrawlResult] = []

    async with JobManager(settings=fast_settings) as jobs:
        await jobs.start(1, "https://example.com/", delivered.append)

    assert len(delivered) == 1
    result = delivered[0]
    assert result.error is None
    assert result.outcome is CrawlOutcome.COMPLETED
    assert result.html_version == "HTML5"
    assert result.internal_links == 2
    assert result.external_links == 1
    assert result.heading_counts["h1"] == 1
    assert result.heading_counts["h2"] == 2
    assert result.has_login_form is True
    assert result.broken_links_details == ()


@pytest.mark.integration
@respx.mock
@pytest.mark.asyncio
async def test_json_target_yields_zeroed_error_result(fast_settings) -> None:
    """Test a non-HTML target ends with an error and zero numeric fields."""
    respx.get("https://api.example.com/").mock(
        return_value=httpx.Response(200, json={"status": "ok"})
    )
    delivered: list[CrawlResult] = []

    async with JobManager(settings=fast_settings) as jobs:
        await jobs.start("api", "api.example.com", delivered.append)

    result = delivered[0]
    assert result.error
    assert result.outcome is CrawlOutcome.FAILED
    assert result.status_code == 0
    assert result.internal_links == 0
    assert result.external_links == 0
    assert result.broken_links == 0
    assert sum(result.heading_counts.values()) == 0


@pytest.mark.integration
@respx.mock
@pytest.mark.asyncio
async def test_unreachable_target_exhausts_retries(fast_settings) -> None:
    """Test a transport failure is attempted max_retries + 1 times."""
    route = respx.get("https://down.example.org/").mock(
        side_effect=httpx.ConnectError("connection refused")
    )
    delivered: list[CrawlResult] = []

    async with JobManager(settings=fast_settings) as jobs:
        await jobs.start(1, "https://down.example.org/", delivered.append)

    assert route.call_count == 4
    assert delivered[0].outcome is CrawlOutcome.FAILED
    assert delivered[0].error.startswith("Failed to fetch URL after 4 attempts")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_stop_during_retry_wait_cancels_within_one_interval(
    fast_settings,
) -> None:
    """Test stop interrupts a retry delay instead of waiting it out."""
    retry_delay = 1.0
    settings = fast_settings.model_copy(update={"retry_delay": retry_delay})
    delivered: list[CrawlResult] = []
    done = asyncio.Event()

    def _on_complete(result: CrawlResult) -> None:
        delivered.append(result)
        done.set()

    with respx.mock(assert_all_called=False) as router:
        route = router.get("https://down.example.org/").mock(
            side_effect=httpx.ConnectError("connection refused")
        )
        async with JobManager(settings=settings) as jobs:
            jobs.start(1, "https://down.example.org/", _on_complete)
            while route.call_count == 0:
                await asyncio.sleep(0.01)

            stopped_at = time.monotonic()
            jobs.stop(1)
            await asyncio.wait_for(done.wait(), timeout=retry_delay)
            elapsed = time.monotonic() - stopped_at

    assert elapsed < retry_delay
    assert route.call_count == 1
    assert delivered[0].error == "Crawl was cancelled"
    assert delivered[0].outcome is CrawlOutcome.CANCELLED


@pytest.mark.integration
@pytest.mark.asyncio
async def test_redirect_chain_over_limit_fails(fast_settings) -> None:
    """Test six redirects exceed the default limit of five."""
    delivered: list[CrawlResult] = []

    with respx.mock(assert_all_called=False) as router:
        for hop in range(6):
            router.get(f"https://example.com/hop{hop}").mock(
                return_value=httpx.Response(
                    302, headers={"Location": f"https://example.com/hop{hop + 1}"}
                )
            )
        router.get("https://example.com/hop6").mock(
            return_value=httpx.Response(200, html=LANDING_PAGE)
        )
        async with JobManager(settings=fast_settings) as jobs:
            await jobs.start(1, "https://example.com/hop0", delivered.append)

    assert delivered[0].outcome is CrawlOutcome.FAILED
    assert delivered[0].error.startswith("Too many redirects (max 5)")


@pytest.mark.integration
@respx.mock
@pytest.mark.asyncio
async def test_broken_links_are_reported_and_deny_list_skipped(fast_settings) -> None:
    """Test broken links surface in the result while deny-listed hosts are skipped."""
    respx.get("https://example.com/").mock(
        return_value=httpx.Response(
            200,
            html=page_with_links(
                "/ok",
                "/gone",
                "https://twitter.com/example",
                "https://partner.example.net/",
            ),
        )
    )
    respx.head("https://example.com/ok").mock(return_value=httpx.Response(200))
    respx.head("https://example.com/gone").mock(return_value=httpx.Response(404))
    respx.head("https://partner.example.net/").mock(
        side_effect=httpx.ConnectError("Name or service not known")
    )
    delivered: list[CrawlResult] = []

    async with JobManager(settings=fast_settings) as jobs:
        await jobs.start(1, "https://example.com/", delivered.append)

    result = delivered[0]
    assert result.internal_links == 2
    assert result.external_links == 2
    assert result.broken_links_details == (
        BrokenLinkInfo("https://example.com/gone", 404, "HTTP 404"),
        BrokenLinkInfo("https://partner.example.net/", 0, "Name or service not known"),
    )


@pytest.mark.integration
@respx.mock
@pytest.mark.asyncio
async def test_second_start_for_same_id_is_rejected(fast_settings) -> None:
    """Test job exclusivity with the real crawler."""
    respx.get("https://example.com/").mock(
        return_value=httpx.Response(200, html=page_with_links())
    )

    async with JobManager(settings=fast_settings) as jobs:
        task = jobs.start("site", "https://example.com/")
        with pytest.raises(AlreadyRunningError):
            jobs.start("site", "https://example.com/")
        result = await task

    assert result.success is True
    assert jobs.is_running("site") is False
