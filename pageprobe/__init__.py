"""pageprobe: fetch a single web page, analyze its structure and report broken links."""

from pageprobe.core.cancellation import CancelToken
from pageprobe.core.config import Settings
from pageprobe.core.errors import (
    AlreadyRunningError,
    CrawlCancelledError,
    CrawlError,
    InvalidURLError,
    JobStateError,
    NotRunningError,
    TooManyRedirectsError,
    TransportError,
    UnsupportedContentTypeError,
)
from pageprobe.core.url_validation import normalize_url
from pageprobe.services import (
    BrokenLinkInfo,
    CrawlerService,
    CrawlOutcome,
    CrawlResult,
    JobManager,
)

__version__ = "0.1.0"

__all__ = [
    "AlreadyRunningError",
    "BrokenLinkInfo",
    "CancelToken",
    "CrawlCancelledError",
    "CrawlError",
    "CrawlerService",
    "CrawlOutcome",
    "CrawlResult",
    "InvalidURLError",
    "JobManager",
    "JobStateError",
    "normalize_url",
    "NotRunningError",
    "Settings",
    "TooManyRedirectsError",
    "TransportError",
    "UnsupportedContentTypeError",
    "__version__",
]
