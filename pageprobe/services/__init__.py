"""Service layer for single-page crawl and analysis."""

from pageprobe.services.analyzer import PageAnalysis, analyze_html
from pageprobe.services.crawler import CrawlerService, crawl_url
from pageprobe.services.fetcher import FetchResult, PageFetcher
from pageprobe.services.jobs import CrawlJob, JobManager
from pageprobe.services.link_checker import LinkChecker
from pageprobe.services.links import ClassifiedLinks, classify_links
from pageprobe.services.models import BrokenLinkInfo, CrawlOutcome, CrawlResult

__all__ = [
    "analyze_html",
    "BrokenLinkInfo",
    "ClassifiedLinks",
    "classify_links",
    "crawl_url",
    "CrawlerService",
    "CrawlJob",
    "CrawlOutcome",
    "CrawlResult",
    "FetchResult",
    "JobManager",
    "LinkChecker",
    "PageAnalysis",
    "PageFetcher",
]
