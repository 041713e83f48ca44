"""Service-layer data models for crawl operations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from pageprobe.services.analyzer import HEADING_TAGS


class CrawlOutcome(str, Enum):
    """Terminal state of a crawl job."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class BrokenLinkInfo:
    """A link whose liveness probe failed.

    Args:
        url: Link that was probed
        status_code: Observed HTTP status, 0 if the request itself failed
        error: Human-readable failure detail
    """

    url: str
    status_code: int
    error: str


@dataclass(frozen=True)
class CrawlResult:
    """Immutable outcome of one crawl job.

    A result with a non-empty ``error`` keeps its ``url`` and ``outcome`` but
    every other field stays at its zero value.

    Args:
        url: Target URL (normalized when validation succeeded)
        status_code: HTTP status of the fetched page
        title: Page title
        html_version: HTML version inferred from the doctype
        internal_links: Number of distinct internal links
        external_links: Number of distinct external links
        heading_counts: Count per heading level h1..h6
        meta_tags: Meta tag key -> content
        has_login_form: Whether the page contains a login form
        login_form_confidence: Login-form indicator score, 0.0-1.0
        broken_links_details: Broken links found by the link checker
        error: Terminal error message, None on success
        outcome: COMPLETED, FAILED or CANCELLED
    """

    url: str
    status_code: int = 0
    title: str = ""
    html_version: str = ""
    internal_links: int = 0
    external_links: int = 0
    heading_counts: Mapping[str, int] = field(default_factory=dict)
    meta_tags: Mapping[str, str] = field(default_factory=dict)
    has_login_form: bool = False
    login_form_confidence: float = 0.0
    broken_links_details: tuple[BrokenLinkInfo, ...] = ()
    error: str | None = None
    outcome: CrawlOutcome = CrawlOutcome.COMPLETED

    def __post_init__(self) -> None:
        # Freeze the containers so the result can be shared without copying
        object.__setattr__(
            self, "heading_counts", MappingProxyType(dict(self.heading_counts))
        )
        object.__setattr__(self, "meta_tags", MappingProxyType(dict(self.meta_tags)))
        object.__setattr__(
            self, "broken_links_details", tuple(self.broken_links_details)
        )

    @classmethod
    def failed(
        cls, url: str, error: str, outcome: CrawlOutcome = CrawlOutcome.FAILED
    ) -> CrawlResult:
        """Build a terminal result carrying only the URL and the error."""
        return cls(url=url, error=error, outcome=outcome)

    @property
    def broken_links(self) -> int:
        """Number of broken links found."""
        return len(self.broken_links_details)

    @property
    def success(self) -> bool:
        """True when the crawl completed without a terminal error."""
        return self.error is None

    @property
    def cancelled(self) -> bool:
        """True when the crawl was stopped on request."""
        return self.outcome is CrawlOutcome.CANCELLED

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-serializable representation."""
        return {
            "url": self.url,
            "status_code": self.status_code,
            "title": self.title,
            "html_version": self.html_version,
            "internal_links": self.internal_links,
            "external_links": self.external_links,
            "broken_links": self.broken_links,
            "heading_counts": dict(self.heading_counts),
            "meta_tags": dict(self.meta_tags),
            "has_login_form": self.has_login_form,
            "login_form_confidence": self.login_form_confidence,
            "broken_links_details": [
                {"url": b.url, "status_code": b.status_code, "error": b.error}
                for b in self.broken_links_details
            ],
            "error": self.error,
            "outcome": self.outcome.value,
        }

    def to_analysis_record(self) -> dict[str, Any]:
        """Flat row in the shape the persistence layer stores per analysis."""
        record: dict[str, Any] = {
            "title": self.title,
            "html_version": self.html_version,
            "internal_links": self.internal_links,
            "external_links": self.external_links,
            "broken_links": self.broken_links,
            "has_login_form": self.has_login_form,
        }
        for tag in HEADING_TAGS:
            record[f"{tag}_count"] = self.heading_counts.get(tag, 0)
        return record
