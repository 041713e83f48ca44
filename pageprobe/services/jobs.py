"""Job manager: cancellable lifecycle of crawl jobs keyed by identifier.

Each job runs as its own ``asyncio.Task``. The registry mapping job ids to
running jobs is guarded by a lock; ``start`` performs an atomic
check-and-insert, and a finishing task only removes its own entry, so a
``stop`` racing a natural completion (or a new ``start`` after ``stop``)
never corrupts the registry. The completion callback fires exactly once per
job, from the job's task, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, field

from pageprobe.core.cancellation import CancelToken
from pageprobe.core.config import Settings
from pageprobe.core.errors import (
    CANCELLED_MESSAGE,
    AlreadyRunningError,
    NotRunningError,
)
from pageprobe.services.crawler import CrawlerService
from pageprobe.services.models import CrawlOutcome, CrawlResult

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[CrawlResult], "Awaitable[None] | None"]


@dataclass(eq=False)
class CrawlJob:
    """One in-flight crawl tracked by the job manager.

    Args:
        job_id: Caller-supplied identifier
        url: Raw target URL
        token: Cancellation handle for the job
        task: Task running the crawl
    """

    job_id: Hashable
    url: str
    token: CancelToken = field(default_factory=CancelToken)
    task: asyncio.Task[CrawlResult] | None = None


class JobManager:
    """Start, stop and query crawl jobs; at most one running job per id.

    Args:
        crawler: CrawlerService shared by all jobs (built from ``settings``
            when omitted, and closed by ``close()``)
        settings: Settings for the default crawler

    Example:
        >>> async with JobManager() as jobs:
        ...     task = jobs.start(42, "example.com", on_complete)
        ...     result = await task
    """

    def __init__(
        self,
        crawler: CrawlerService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._owns_crawler = crawler is None
        self._crawler = crawler or CrawlerService(settings)
        self._jobs: dict[Hashable, CrawlJob] = {}
        self._lock = threading.Lock()

    def start(
        self,
        job_id: Hashable,
        url: str,
        on_complete: CompletionCallback | None = None,
    ) -> asyncio.Task[CrawlResult]:
        """Launch a crawl job without waiting for it.

        Must be called from within a running event loop.

        Args:
            job_id: Identifier the job is tracked under
            url: Raw target URL (validated inside the job)
            on_complete: Called exactly once with the job's CrawlResult;
                may be a plain function or a coroutine function

        Returns:
            The job's task, resolving to the same CrawlResult

        Raises:
            AlreadyRunningError: If a job with ``job_id`` is running
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if job_id in self._jobs:
                raise AlreadyRunningError(job_id)
            job = CrawlJob(job_id=job_id, url=url)
            self._jobs[job_id] = job
        # Outside the lock: an eager task factory may run the job inline
        job.task = loop.create_task(self._run(job, on_complete), name=f"crawl-{job_id}")

        logger.info("Started crawl job %r for %s", job_id, url)
        return job.task

    def stop(self, job_id: Hashable) -> None:
        """Cancel a running job and forget it.

        The job's callback still fires, with a cancelled result.

        Raises:
            NotRunningError: If no job with ``job_id`` is running
        """
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            raise NotRunningError(job_id)
        job.token.cancel()
        logger.info("Stopped crawl job %r", job_id)

    def is_running(self, job_id: Hashable) -> bool:
        """Return True if a job with ``job_id`` is running."""
        with self._lock:
            return job_id in self._jobs

    def running_jobs(self) -> list[Hashable]:
        """Identifiers of all running jobs."""
        with self._lock:
            return list(self._jobs)

    async def wait(self, job_id: Hashable) -> CrawlResult:
        """Wait for a running job to finish and return its result.

        Raises:
            NotRunningError: If no job with ``job_id`` is running
        """
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None or job.task is None:
            raise NotRunningError(job_id)
        return await asyncio.shield(job.task)

    async def stop_all(self) -> None:
        """Cancel every running job and wait for their callbacks to fire."""
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
        for job in jobs:
            job.token.cancel()
        tasks = [job.task for job in jobs if job.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Stop all jobs and close the crawler if this manager created it."""
        await self.stop_all()
        if self._owns_crawler:
            await self._crawler.close()

    async def __aenter__(self) -> JobManager:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and cleanup resources."""
        await self.close()

    async def _run(
        self, job: CrawlJob, on_complete: CompletionCallback | None
    ) -> CrawlResult:
        result: CrawlResult | None = None
        try:
            result = await self._crawler.crawl(job.url, job.token)
        except asyncio.CancelledError:
            result = CrawlResult.failed(job.url, CANCELLED_MESSAGE, CrawlOutcome.CANCELLED)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Crawl job %r crashed", job.job_id)
            result = CrawlResult.failed(job.url, f"Unexpected crawl failure: {exc}")
        finally:
            self._release(job)
            if result is None:
                result = CrawlResult.failed(job.url, "Crawl terminated unexpectedly")
            logger.info(
                "Crawl job %r finished: %s%s",
                job.job_id,
                result.outcome.value,
                f" ({result.error})" if result.error else "",
            )
            await self._deliver(job, result, on_complete)
        return result

    def _release(self, job: CrawlJob) -> None:
        # Only remove our own entry; a stop() may already have removed it and
        # a new job may have been started under the same id since.
        with self._lock:
            if self._jobs.get(job.job_id) is job:
                del self._jobs[job.job_id]

    async def _deliver(
        self,
        job: CrawlJob,
        result: CrawlResult,
        on_complete: CompletionCallback | None,
    ) -> None:
        if on_complete is None:
            return
        try:
            outcome = on_complete(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:  # noqa: BLE001
            logger.exception("Completion callback for crawl job %r failed", job.job_id)
