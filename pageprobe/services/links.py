"""Link resolution, internal/external classification and deduplication.

Links are resolved against the page (or its ``<base href>``), non-HTTP(S)
schemes and fragment-only references are dropped, and the rest are split by
host: a link is internal when its resolved host equals the page origin's
host exactly. Duplicates are identified by scheme, host, path and query;
the fragment is ignored and first-occurrence order is kept.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

from pageprobe.core.url_validation import ALLOWED_SCHEMES


@dataclass(frozen=True)
class ClassifiedLinks:
    """Deduplicated links split by origin.

    Args:
        internal: Links on the origin host, in first-occurrence order
        external: Links on any other host, in first-occurrence order
    """

    internal: tuple[str, ...] = ()
    external: tuple[str, ...] = ()

    @property
    def all(self) -> tuple[str, ...]:
        """Internal links followed by external links."""
        return self.internal + self.external

    def __len__(self) -> int:
        return len(self.internal) + len(self.external)


def link_key(url: str) -> str | None:
    """Return the dedup key ``scheme://host/path?query`` of an absolute URL.

    Returns None for URLs that are not absolute http(s) URLs.
    """
    try:
        parsed = urlsplit(url)
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES or not parsed.netloc:
        return None
    key = f"{scheme}://{parsed.netloc.lower()}{parsed.path}"
    if parsed.query:
        key += f"?{parsed.query}"
    return key


def resolve_link(href: str, base_url: str) -> str | None:
    """Resolve ``href`` against ``base_url`` into a dedup key, or None to drop it."""
    href = href.strip()
    if not href or href.startswith("#"):
        return None
    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        return None
    return link_key(resolved)


def origin_host(url: str) -> str:
    """Lowercased ``host[:port]`` of a URL, "" if it cannot be parsed."""
    try:
        return urlsplit(url).netloc.lower()
    except ValueError:
        return ""


def classify_links(
    links: Iterable[str],
    origin_url: str,
    base_url: str | None = None,
) -> ClassifiedLinks:
    """Resolve, filter, deduplicate and classify raw href values.

    Args:
        links: Raw href values in document order
        origin_url: URL of the page; its host decides internal vs external
        base_url: Resolution base when it differs from the page URL
            (``<base href>``); defaults to ``origin_url``

    Returns:
        ClassifiedLinks whose internal and external tuples are disjoint and
        together hold every distinct resolvable http(s) link
    """
    host = origin_host(origin_url)
    base = base_url or origin_url
    seen: set[str] = set()
    internal: list[str] = []
    external: list[str] = []

    for href in links:
        key = resolve_link(href, base)
        if key is None or key in seen:
            continue
        seen.add(key)
        if origin_host(key) == host:
            internal.append(key)
        else:
            external.append(key)

    return ClassifiedLinks(internal=tuple(internal), external=tuple(external))


def deduplicate_links(links: Iterable[str]) -> list[str]:
    """Remove duplicates while keeping first-occurrence order."""
    return list(dict.fromkeys(links))


def host_matches(url: str, domains: Iterable[str]) -> bool:
    """Return True if the URL's host is one of ``domains`` or a subdomain of one."""
    try:
        hostname = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False
    if not hostname:
        return False
    for domain in domains:
        if hostname == domain or hostname.endswith("." + domain):
            return True
    return False
