"""Exception hierarchy for pageprobe.

Crawl-execution failures derive from ``CrawlError`` and are recovered into a
``CrawlResult.error`` string by the crawler service. Job bookkeeping failures
derive from ``JobStateError`` and are the only errors raised synchronously to
callers of the job manager.
"""

from __future__ import annotations

CANCELLED_MESSAGE = "Crawl was cancelled"


class PageProbeError(Exception):
    """Base class for all pageprobe errors."""


class CrawlError(PageProbeError):
    """Failure raised while executing a crawl.

    The string form is the human-readable message stored on the result.
    """


class InvalidURLError(CrawlError, ValueError):
    """Raised when a raw URL cannot be normalized into an absolute http(s) URL."""


class TransportError(CrawlError):
    """Raised when every fetch attempt failed at the transport level.

    Args:
        url: URL that was being fetched
        attempts: Total number of attempts made
        cause: Last underlying exception
    """

    def __init__(self, url: str, attempts: int, cause: BaseException | None) -> None:
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Failed to fetch URL after {attempts} attempts: {cause}")


class TooManyRedirectsError(CrawlError):
    """Raised when a redirect chain exceeds the configured maximum."""

    def __init__(self, url: str, max_redirects: int) -> None:
        self.url = url
        self.max_redirects = max_redirects
        super().__init__(f"Too many redirects (max {max_redirects}) for {url}")


class UnsupportedContentTypeError(CrawlError):
    """Raised when a fetched response is not HTML and cannot be analyzed."""

    def __init__(self, url: str, content_type: str, status_code: int) -> None:
        self.url = url
        self.content_type = content_type
        self.status_code = status_code
        super().__init__(
            f"URL does not return HTML content (Content-Type: {content_type})"
        )


class CrawlCancelledError(CrawlError):
    """Raised when the job's cancellation token fires mid-crawl."""

    def __init__(self, message: str = CANCELLED_MESSAGE) -> None:
        super().__init__(message)


class JobStateError(PageProbeError):
    """Base class for job registry state violations."""

    def __init__(self, job_id: object, message: str) -> None:
        self.job_id = job_id
        super().__init__(message)


class AlreadyRunningError(JobStateError):
    """Raised when starting a job whose identifier is already running."""

    def __init__(self, job_id: object) -> None:
        super().__init__(job_id, f"Crawl job {job_id!r} is already running")


class NotRunningError(JobStateError):
    """Raised when stopping a job whose identifier is not running."""

    def __init__(self, job_id: object) -> None:
        super().__init__(job_id, f"No running crawl job found for {job_id!r}")
