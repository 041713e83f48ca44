"""URL normalization and validation for crawl targets.

No network access happens here: the raw input is trimmed, given a scheme if
it lacks one, parsed, checked, and returned without its fragment.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

from pageprobe.core.errors import InvalidURLError

ALLOWED_SCHEMES = frozenset({"http", "https"})

# "scheme://..." or an opaque non-web scheme such as "mailto:" must not be
# mistaken for a bare host that only needs "https://" in front of it.
_EXPLICIT_SCHEME = re.compile(
    r"^([a-z][a-z0-9+.-]*)://|^(mailto|javascript|tel|data|file|about):",
    re.IGNORECASE,
)


def normalize_url(raw_url: str) -> str:
    """Sanitize a raw string into an absolute, fragment-free http(s) URL.

    Args:
        raw_url: User-supplied URL, possibly without scheme, padded with
            whitespace or carrying a fragment.

    Returns:
        Absolute URL with scheme ``http`` or ``https`` and no fragment.

    Raises:
        InvalidURLError: If the input is empty, unparsable, uses another
            scheme, or has no host.

    Examples:
        >>> normalize_url("  example.com/a#frag ")
        'https://example.com/a'
        >>> normalize_url("ftp://example.com")
        Traceback (most recent call last):
        ...
        InvalidURLError: Unsupported URL scheme: ftp
    """
    candidate = (raw_url or "").strip()
    if not candidate:
        raise InvalidURLError("URL cannot be empty")

    explicit = _EXPLICIT_SCHEME.match(candidate)
    if explicit:
        scheme = explicit.group(1) or explicit.group(2)
        if scheme.lower() not in ALLOWED_SCHEMES:
            raise InvalidURLError(f"Unsupported URL scheme: {scheme}")

    if not candidate.lower().startswith(("http://", "https://")):
        candidate = "https://" + candidate

    try:
        parsed = urlsplit(candidate)
        # Accessing port validates it
        parsed.port
    except ValueError as exc:
        raise InvalidURLError(f"Invalid URL format: {exc}") from exc

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidURLError(f"Unsupported URL scheme: {parsed.scheme}")

    if not parsed.hostname:
        raise InvalidURLError("URL must have a valid host")

    return urlunsplit((scheme, parsed.netloc, parsed.path, parsed.query, ""))


def is_http_url(url: str) -> bool:
    """Return True if ``url`` is an absolute http(s) URL with a host."""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    return parsed.scheme.lower() in ALLOWED_SCHEMES and bool(parsed.hostname)
